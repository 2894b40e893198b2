"""Typed intent set and decoder pipeline descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


@dataclass
class DecoderSpec:
    """One requested decoder, its options and its channel mappings."""

    name: str
    options: Dict[str, str] = field(default_factory=dict)
    channels: Dict[str, str] = field(default_factory=dict)


@dataclass
class DecoderStack:
    """Ordered decoder chain, bottom first."""

    decoders: List[DecoderSpec]

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self.decoders]

    @property
    def top(self) -> str:
        return self.decoders[-1].name


@dataclass(frozen=True)
class BinaryOutput:
    spec: str
    kind: str = "binary"


@dataclass(frozen=True)
class MetaOutput:
    spec: str
    kind: str = "meta"


@dataclass(frozen=True)
class AnnotationOutput:
    filters: Optional[str] = None
    kind: str = "annotation"


OutputSink = Union[BinaryOutput, MetaOutput, AnnotationOutput]


@dataclass
class StopCondition:
    """When a live capture ends. Continuous runs until interrupted."""

    samples: Optional[int] = None
    time_ms: Optional[int] = None
    frames: Optional[int] = None
    continuous: bool = False

    @property
    def requested(self) -> bool:
        return bool(self.samples or self.time_ms or self.frames or self.continuous)


@dataclass
class RunOptions:
    """Everything the core needs from the parsed command line."""

    loglevel: int = 2
    version: bool = False
    scan: bool = False
    show: bool = False
    driver: Optional[str] = None
    config: Optional[str] = None
    channels: Optional[str] = None
    set_config: bool = False
    input_file: Optional[str] = None
    input_format: Optional[str] = None
    output_file: Optional[str] = None
    output_format: str = "bits"
    stop: StopCondition = field(default_factory=StopCondition)
    decoders: Optional[str] = None
    decoder_stack: Optional[str] = None
    annotations: Optional[str] = None
    binary: Optional[str] = None
    meta: Optional[str] = None
    usage: str = ""

    @property
    def decoding_requested(self) -> bool:
        return bool(self.decoders and self.decoders.strip())


def select_output_sink(options: RunOptions) -> Optional[OutputSink]:
    """Decide the single decoder output sink: binary, then meta, then annotations."""

    if not options.decoding_requested:
        return None
    if options.binary:
        return BinaryOutput(options.binary)
    if options.meta:
        return MetaOutput(options.meta)
    return AnnotationOutput(options.annotations)
