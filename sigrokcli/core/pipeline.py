"""Decoder pipeline builder: decoders, stack, and the single output sink."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from sigrokcli.core.errors import ConfigurationError, DecoderError
from sigrokcli.core.options import (
    AnnotationOutput,
    BinaryOutput,
    DecoderSpec,
    DecoderStack,
    MetaOutput,
    OutputSink,
    select_output_sink,
)
from sigrokcli.drivers.base import DecoderCallback, DecoderInfo
from sigrokcli.io.decoder_output import AnnotationPrinter, BinaryPrinter, MetaPrinter
from sigrokcli.util.logging import get_logger
from sigrokcli.util.specs import parse_class_filter, parse_decoder_list, parse_stack

if TYPE_CHECKING:  # pragma: no cover
    from sigrokcli.core.run import RunState

logger = get_logger(__name__)


@dataclass
class DecoderPipeline:
    stack: DecoderStack
    infos: Dict[str, DecoderInfo]
    sink: OutputSink
    callback: DecoderCallback
    visible: Dict[str, List[str]] = field(default_factory=dict)


def load_decoders(state: "RunState", specs: List[DecoderSpec]) -> Dict[str, DecoderInfo]:
    """Look up each decoder and split its options into options and channel mappings."""

    dec = state.decoder
    assert dec is not None
    infos: Dict[str, DecoderInfo] = {}
    for spec in specs:
        try:
            info = dec.decoder_info(state.srd_ctx, spec.name)
        except DecoderError as exc:
            raise ConfigurationError(f"Failed to load protocol decoder {spec.name}.") from exc
        option_ids = {opt.id for opt in info.options}
        channel_ids = set(info.channel_ids)
        for key in list(spec.options):
            if key in channel_ids:
                spec.channels[key] = spec.options.pop(key)
            elif key not in option_ids:
                raise ConfigurationError(f"Unknown option or channel '{key}' for protocol decoder '{spec.name}'.")
        infos[spec.name] = info
    return infos


def resolve_stack(specs: List[DecoderSpec], stack_text: Optional[str]) -> DecoderStack:
    """Order the decoders bottom first, following an explicit stack when given."""

    if not stack_text:
        return DecoderStack(decoders=list(specs))
    by_name = {spec.name: spec for spec in specs}
    ids = parse_stack(stack_text)
    if len(set(ids)) != len(ids) or any(name not in by_name for name in ids):
        raise ConfigurationError("Invalid protocol decoder stack.")
    missing = [spec.name for spec in specs if spec.name not in ids]
    if missing:
        raise ConfigurationError(f"Protocol decoder '{missing[0]}' is not part of the stack.")
    return DecoderStack(decoders=[by_name[name] for name in ids])


def _validated_filter(
    text: str, stack: DecoderStack, infos: Dict[str, DecoderInfo], *, binary: bool
) -> Dict[str, List[str]]:
    filters = parse_class_filter(text)
    for name, classes in filters.items():
        if name not in stack.names:
            raise ConfigurationError(f"Protocol decoder '{name}' not found.")
        known = infos[name].binary_ids if binary else infos[name].annotation_ids
        what = "binary output" if binary else "annotation"
        if binary and not known:
            raise ConfigurationError(f"Protocol decoder '{name}' has no binary output.")
        for cls in classes:
            if cls not in known:
                raise ConfigurationError(f"Protocol decoder '{name}' has no {what} class '{cls}'.")
    return filters


def select_callback(sink: OutputSink, stack: DecoderStack, infos: Dict[str, DecoderInfo]):
    """Validate the sink spec and build the printer callback for it."""

    if isinstance(sink, BinaryOutput):
        visible = _validated_filter(sink.spec, stack, infos, binary=True)
        return BinaryPrinter(visible), visible
    if isinstance(sink, MetaOutput):
        names = [tok.strip() for tok in sink.spec.split(",") if tok.strip()]
        if not names:
            raise ConfigurationError(f"Invalid meta output '{sink.spec}'.")
        for name in names:
            if name not in stack.names:
                raise ConfigurationError(f"Protocol decoder '{name}' not found.")
        visible = {name: [] for name in names}
        return MetaPrinter(visible), visible
    if sink.filters:
        visible = _validated_filter(sink.filters, stack, infos, binary=False)
    else:
        visible = {stack.top: []}
    return AnnotationPrinter(visible), visible


def build_decoder_pipeline(state: "RunState") -> DecoderPipeline:
    """Register decoders, attach the stack, bind exactly one output sink."""

    opts = state.options
    dec = state.decoder
    assert dec is not None and state.srd_session is not None

    specs = parse_decoder_list(opts.decoders or "")
    infos = load_decoders(state, specs)
    dec.register_decoders(state.srd_session, specs)

    stack = resolve_stack(specs, opts.decoder_stack)
    dec.build_stack(state.srd_session, stack)

    sink = select_output_sink(opts)
    assert sink is not None
    callback, visible = select_callback(sink, stack, infos)
    dec.register_output_callback(state.srd_session, sink.kind, callback)
    logger.info("Decoder stack %s with %s output", " -> ".join(stack.names), sink.kind)
    return DecoderPipeline(stack=stack, infos=infos, sink=sink, callback=callback, visible=visible)
