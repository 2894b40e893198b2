"""Route acquisition data into the decoder session or an output module."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, List, Optional

import numpy as np

from sigrokcli.drivers.base import FeedEnd, FeedHeader, LogicChunk, OutputWriter
from sigrokcli.util.logging import get_logger
from sigrokcli.util.specs import channel_indices

if TYPE_CHECKING:  # pragma: no cover
    from sigrokcli.core.run import RunState

logger = get_logger(__name__)


class SampleFeed:
    """Datafeed callback handed to the acquisition library.

    With decoding active, logic samples go to the decoder session with
    absolute sample numbers; otherwise every packet goes to the output writer.
    """

    def __init__(
        self,
        state: "RunState",
        *,
        writer_factory: Optional[Callable[[Any], OutputWriter]] = None,
        limit_samples: Optional[int] = None,
    ) -> None:
        self.state = state
        self.writer_factory = writer_factory
        self.writer: Optional[OutputWriter] = None
        self.limit_samples = limit_samples
        self.samplerate: Optional[int] = None
        self.samples_seen = 0
        self.decoder_started = False
        self.ended = False

    @property
    def decoding(self) -> bool:
        return self.state.srd_session is not None and self.state.pipeline is not None

    def __call__(self, device: Any, event: Any) -> None:
        if isinstance(event, FeedHeader):
            if event.samplerate:
                self.samplerate = int(event.samplerate)
        elif isinstance(event, LogicChunk):
            self._logic(device, event)
            return
        elif isinstance(event, FeedEnd):
            self.ended = True
            logger.debug("End of feed after %d samples", self.samples_seen)
        if not self.decoding:
            writer = self._writer(device)
            if writer is not None:
                writer.receive(event)

    def _writer(self, device: Any) -> Optional[OutputWriter]:
        if self.writer is None and self.writer_factory is not None:
            self.writer = self.writer_factory(device)
        return self.writer

    def close(self) -> None:
        if self.writer is not None:
            self.writer.close()
            self.writer = None

    def _start_decoder(self, device: Any) -> None:
        dec = self.state.decoder
        pipeline = self.state.pipeline
        assert dec is not None and pipeline is not None
        names: List[str] = []
        if device is not None:
            names = self.state.acquisition.describe(device).channels
            if self.samplerate is None:
                self.samplerate = self.state.acquisition.samplerate(device)
        for spec in pipeline.stack.decoders:
            if spec.channels:
                dec.map_channels(self.state.srd_session, spec.name, channel_indices(spec.channels, names))
        dec.start(self.state.srd_session, self.samplerate)
        self.decoder_started = True

    def _remaining(self) -> Optional[int]:
        if not self.limit_samples:
            return None
        return max(self.limit_samples - self.samples_seen, 0)

    def _logic(self, device: Any, chunk: LogicChunk) -> None:
        count = chunk.num_samples
        remaining = self._remaining()
        if remaining is not None:
            if remaining == 0:
                return
            if count > remaining:
                count = remaining
        if count <= 0:
            return
        data = np.ascontiguousarray(chunk.data, dtype=np.uint8).reshape(-1)[: count * chunk.unitsize]
        if not self.decoding:
            writer = self._writer(device)
            if writer is not None:
                if count < chunk.num_samples:
                    chunk = LogicChunk(data=data, unitsize=chunk.unitsize)
                writer.receive(chunk)
            self.samples_seen += count
            return

        dec = self.state.decoder
        assert dec is not None
        if not self.decoder_started:
            self._start_decoder(device)
        dec.send(self.state.srd_session, self.samples_seen, data, chunk.unitsize)
        self.samples_seen += count
