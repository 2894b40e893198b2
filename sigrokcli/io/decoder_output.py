"""Decoder output sink callbacks.

Exactly one of these is registered with the decoder session per run.
Each holds the visibility map built by the pipeline (decoder -> class ids,
empty meaning every class) and drops anything outside it.
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

from sigrokcli.drivers.base import DecoderEvent


class _FilteredPrinter:
    def __init__(self, visible: Dict[str, List[str]], stream: Optional[Any] = None):
        self.visible = visible
        self._stream = stream

    def wants(self, event: DecoderEvent) -> bool:
        classes = self.visible.get(event.decoder)
        if classes is None:
            return False
        return not classes or event.cls in classes


class BinaryPrinter(_FilteredPrinter):
    """Write raw binary payloads to stdout, unframed."""

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stdout.buffer

    def __call__(self, event: DecoderEvent) -> None:
        if not self.wants(event) or not event.data:
            return
        self.stream.write(event.data)
        self.stream.flush()


class MetaPrinter(_FilteredPrinter):
    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stdout

    def __call__(self, event: DecoderEvent) -> None:
        if not self.wants(event):
            return
        self.stream.write(f"{event.decoder}-{event.cls}: {event.value}\n" if event.cls else f"{event.decoder}: {event.value}\n")
        self.stream.flush()


class AnnotationPrinter(_FilteredPrinter):
    """One line per annotation: ``decoder: text``, using the longest text variant."""

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stdout

    def __call__(self, event: DecoderEvent) -> None:
        if not self.wants(event) or not event.texts:
            return
        self.stream.write(f"{event.decoder}: {event.texts[0]}\n")
        self.stream.flush()
