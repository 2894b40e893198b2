"""Contracts for the acquisition and decoder libraries consumed by the core.

The core never touches library globals; every call carries the handle it
applies to.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from sigrokcli.core.options import DecoderSpec, DecoderStack, StopCondition


@dataclass
class DeviceSummary:
    driver: str
    vendor: str = ""
    model: str = ""
    version: str = ""
    connection: str = ""
    channels: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        parts = [p for p in (self.vendor, self.model, self.version) if p]
        return " ".join(parts) or self.driver


@dataclass
class FeedHeader:
    samplerate: Optional[int] = None
    raw: Any = None


@dataclass
class LogicChunk:
    """Logic samples, one row of ``unitsize`` bytes per sample."""

    data: np.ndarray
    unitsize: int
    raw: Any = None

    @property
    def num_samples(self) -> int:
        if self.unitsize <= 0:
            return 0
        return int(self.data.size // self.unitsize)


@dataclass
class FeedEnd:
    raw: Any = None


@dataclass
class FeedOther:
    """Packets the core forwards to output modules without interpreting."""

    raw: Any = None


FeedEvent = Any
FeedSink = Callable[[Any, FeedEvent], None]


@dataclass
class DecoderOption:
    id: str
    desc: str = ""
    default: Optional[str] = None
    values: List[str] = field(default_factory=list)


@dataclass
class DecoderChannel:
    id: str
    name: str = ""
    desc: str = ""
    optional: bool = False


@dataclass
class DecoderInfo:
    id: str
    name: str = ""
    longname: str = ""
    desc: str = ""
    license: str = ""
    channels: List[DecoderChannel] = field(default_factory=list)
    options: List[DecoderOption] = field(default_factory=list)
    annotations: List[Tuple[str, str]] = field(default_factory=list)
    binary: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def annotation_ids(self) -> List[str]:
        return [ann_id for ann_id, _ in self.annotations]

    @property
    def binary_ids(self) -> List[str]:
        return [bin_id for bin_id, _ in self.binary]

    @property
    def channel_ids(self) -> List[str]:
        return [ch.id for ch in self.channels]


@dataclass
class DecoderEvent:
    """One piece of decoder output delivered to the registered sink callback."""

    decoder: str
    start_sample: int
    end_sample: int
    cls: str = ""
    texts: List[str] = field(default_factory=list)
    data: bytes = b""
    value: Any = None


DecoderCallback = Callable[[DecoderEvent], None]


class OutputWriter(abc.ABC):
    """Acquisition-library output module bound to one device and stream."""

    @abc.abstractmethod
    def receive(self, event: FeedEvent) -> None: ...

    def close(self) -> None:
        pass


class AcquisitionLibrary(abc.ABC):
    """Device driver and acquisition engine."""

    name = "acquisition"

    @abc.abstractmethod
    def set_verbosity(self, level: int) -> None: ...

    @abc.abstractmethod
    def create_context(self) -> Any: ...

    @abc.abstractmethod
    def destroy_context(self, ctx: Any) -> None: ...

    @abc.abstractmethod
    def versions(self, ctx: Any) -> Dict[str, str]: ...

    @abc.abstractmethod
    def drivers(self, ctx: Any) -> List[Tuple[str, str]]: ...

    @abc.abstractmethod
    def input_formats(self, ctx: Any) -> List[Tuple[str, str]]: ...

    @abc.abstractmethod
    def output_formats(self, ctx: Any) -> List[Tuple[str, str]]: ...

    @abc.abstractmethod
    def scan(self, ctx: Any, driver_spec: Optional[str] = None) -> List[Any]: ...

    @abc.abstractmethod
    def describe(self, device: Any) -> DeviceSummary: ...

    @abc.abstractmethod
    def device_detail(self, device: Any) -> Dict[str, str]: ...

    @abc.abstractmethod
    def open(self, device: Any) -> None: ...

    @abc.abstractmethod
    def close(self, device: Any) -> None: ...

    @abc.abstractmethod
    def select_channels(self, device: Any, names: List[str]) -> None: ...

    @abc.abstractmethod
    def configure(self, device: Any, settings: Dict[str, str]) -> None: ...

    @abc.abstractmethod
    def samplerate(self, device: Any) -> Optional[int]: ...

    @abc.abstractmethod
    def run_capture(self, ctx: Any, device: Any, stop: StopCondition, sink: FeedSink) -> None: ...

    @abc.abstractmethod
    def load_file(self, ctx: Any, path: str, input_format: Optional[str], sink: FeedSink) -> None: ...

    @abc.abstractmethod
    def create_output(self, ctx: Any, format_spec: str, device: Any, stream: Any) -> OutputWriter: ...


class DecoderLibrary(abc.ABC):
    """Protocol decoder engine."""

    name = "decoder"

    @abc.abstractmethod
    def set_verbosity(self, level: int) -> None: ...

    @abc.abstractmethod
    def create_context(self) -> Any: ...

    @abc.abstractmethod
    def destroy_context(self, ctx: Any) -> None: ...

    @abc.abstractmethod
    def create_session(self, ctx: Any) -> Any: ...

    @abc.abstractmethod
    def destroy_session_subsystem(self, session: Any) -> None: ...

    @abc.abstractmethod
    def version(self) -> str: ...

    @abc.abstractmethod
    def list_decoders(self, ctx: Any) -> List[Tuple[str, str]]: ...

    @abc.abstractmethod
    def decoder_info(self, ctx: Any, name: str) -> DecoderInfo: ...

    @abc.abstractmethod
    def register_decoders(self, session: Any, decoders: List[DecoderSpec]) -> None: ...

    @abc.abstractmethod
    def build_stack(self, session: Any, stack: DecoderStack) -> None: ...

    @abc.abstractmethod
    def register_output_callback(self, session: Any, kind: str, callback: DecoderCallback) -> None: ...

    @abc.abstractmethod
    def map_channels(self, session: Any, name: str, mapping: Dict[str, int]) -> None: ...

    @abc.abstractmethod
    def start(self, session: Any, samplerate: Optional[int]) -> None: ...

    @abc.abstractmethod
    def send(self, session: Any, start_sample: int, data: np.ndarray, unitsize: int) -> None: ...

