"""The top-level actions. Each runs inside an already acquired run state."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sigrokcli.core.errors import AcquisitionError, ConfigurationError
from sigrokcli.core.feed import SampleFeed
from sigrokcli.io import show
from sigrokcli.util.logging import get_logger
from sigrokcli.util.specs import parse_channel_selection, parse_generic_arg

if TYPE_CHECKING:  # pragma: no cover
    from sigrokcli.core.run import RunState

logger = get_logger(__name__)


def _emit(lines: List[str]) -> None:
    for line in lines:
        print(line)
    sys.stdout.flush()


def _parse_config(text: Optional[str]) -> Dict[str, str]:
    if not text:
        return {}
    _, settings = parse_generic_arg(text, require_name=False)
    return dict(settings)


def _scan(state: "RunState") -> List[Any]:
    return list(state.acquisition.scan(state.sr_ctx, state.options.driver))


def show_version(state: "RunState") -> None:
    acq = state.acquisition
    ctx = state.sr_ctx
    decoder_version = None
    decoders = None
    if state.decoder is not None:
        decoder_version = state.decoder.version()
        if state.srd_ctx is not None:
            decoders = state.decoder.list_decoders(state.srd_ctx)
    _emit(
        show.format_version(
            acq.versions(ctx),
            acq.drivers(ctx),
            acq.input_formats(ctx),
            acq.output_formats(ctx),
            decoder_version=decoder_version,
            decoders=decoders,
        )
    )


def show_help(state: "RunState") -> None:
    _emit([state.options.usage.rstrip("\n")] if state.options.usage else ["No action specified."])


def show_dev_list(state: "RunState") -> None:
    devices = _scan(state)
    if not devices:
        logger.warning("No devices found.")
        return
    _emit(show.format_device_list([state.acquisition.describe(dev) for dev in devices]))


def show_dev_detail(state: "RunState") -> None:
    acq = state.acquisition
    devices = _scan(state)
    if not devices:
        logger.critical("No devices found.")
        return
    if len(devices) > 1:
        logger.warning("%d devices found, showing the first one.", len(devices))
    device = devices[0]
    try:
        acq.open(device)
    except AcquisitionError as exc:
        logger.debug("open: %s", exc)
        logger.critical("Failed to open device.")
        return
    try:
        _emit(show.format_device_detail(acq.describe(device), acq.device_detail(device)))
    finally:
        acq.close(device)


def show_pd_detail(state: "RunState") -> None:
    assert state.pipeline is not None
    blocks: List[str] = []
    for name in state.pipeline.stack.names:
        if blocks:
            blocks.append("")
        blocks.extend(show.format_decoder_detail(state.pipeline.infos[name]))
    _emit(blocks)


def set_options(state: "RunState") -> None:
    """Open the first scanned device, apply the settings, close it."""

    acq = state.acquisition
    opts = state.options
    if not opts.config:
        logger.critical("No setting specified.")
        return
    settings = _parse_config(opts.config)
    devices: List[Any] = []
    try:
        devices = _scan(state)
        if not devices:
            logger.critical("No devices found.")
            return
        device = devices[0]
        try:
            acq.open(device)
        except AcquisitionError as exc:
            logger.debug("open: %s", exc)
            logger.critical("Failed to open device.")
            return
        try:
            acq.configure(device, settings)
        except AcquisitionError as exc:
            logger.error("Failed to apply settings: %s", exc)
        finally:
            acq.close(device)
    finally:
        devices.clear()
        settings.clear()


def _output_stream(state: "RunState"):
    """Raw output target. Decoder output goes to stdout, so nothing is opened then."""

    if state.decoding_active:
        return None, False
    path = state.options.output_file
    if not path:
        return sys.stdout.buffer, False
    try:
        return open(path, "wb"), True
    except OSError as exc:
        raise ConfigurationError(f"Failed to open output file {path}: {exc}") from exc


def _limit_samples(state: "RunState", device: Any) -> Optional[int]:
    stop = state.options.stop
    if stop.samples:
        return stop.samples
    if stop.time_ms:
        samplerate = state.acquisition.samplerate(device)
        if samplerate:
            return int(samplerate * stop.time_ms // 1000)
    return None


def _feed(state: "RunState", stream: Any, limit: Optional[int], device: Any = None) -> SampleFeed:
    """Build the datafeed; with a known device the output module is created up front."""

    acq = state.acquisition
    fmt = state.options.output_format

    def factory(dev: Any):
        return acq.create_output(state.sr_ctx, fmt, dev, stream)

    if device is not None and not state.decoding_active:
        writer = factory(device)
        feed = SampleFeed(state, limit_samples=limit)
        feed.writer = writer
        return feed
    return SampleFeed(state, writer_factory=factory, limit_samples=limit)


def load_input_file(state: "RunState") -> None:
    """Replay a capture file through the same decode or output path as a live run."""

    opts = state.options
    stream, owned = None, False
    feed = None
    try:
        stream, owned = _output_stream(state)
        feed = _feed(state, stream, None)
        state.acquisition.load_file(state.sr_ctx, opts.input_file, opts.input_format, feed)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping replay.")
    except AcquisitionError as exc:
        logger.error("Failed to load %s: %s", opts.input_file, exc)
    finally:
        if feed is not None:
            feed.close()
        if owned and stream is not None:
            stream.close()
    if feed is not None:
        logger.info("Replayed %d samples from %s", feed.samples_seen, opts.input_file)


def run_session(state: "RunState") -> None:
    """Capture from the first scanned device until the stop condition is met."""

    acq = state.acquisition
    opts = state.options
    settings = _parse_config(opts.config)
    devices = _scan(state)
    if not devices:
        logger.critical("No devices found.")
        return
    if len(devices) > 1:
        logger.critical("sigrok-cli only supports one device for capturing.")
        return
    device = devices[0]
    try:
        acq.open(device)
    except AcquisitionError as exc:
        logger.debug("open: %s", exc)
        logger.critical("Failed to open device.")
        return

    stream, owned = None, False
    feed = None
    try:
        if opts.channels:
            names = parse_channel_selection(opts.channels, acq.describe(device).channels)
            acq.select_channels(device, names)
        if settings:
            acq.configure(device, settings)
        stream, owned = _output_stream(state)
        feed = _feed(state, stream, _limit_samples(state, device), device)
        acq.run_capture(state.sr_ctx, device, opts.stop, feed)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping acquisition.")
    except AcquisitionError as exc:
        logger.error("Acquisition failed: %s", exc)
    finally:
        if feed is not None:
            feed.close()
        if owned and stream is not None:
            stream.close()
        acq.close(device)
