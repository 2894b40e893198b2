"""libsigrok acquisition backend over the sigrok.core Python bindings."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

import numpy as np

from sigrokcli.core.errors import AcquisitionError, ConfigurationError
from sigrokcli.core.options import StopCondition
from sigrokcli.drivers.base import (
    AcquisitionLibrary,
    DeviceSummary,
    FeedEnd,
    FeedHeader,
    FeedOther,
    FeedSink,
    LogicChunk,
    OutputWriter,
)
from sigrokcli.util.logging import get_logger
from sigrokcli.util.specs import parse_generic_arg

try:  # pragma: no cover - optional dependency
    from sigrok.core.classes import ConfigKey, Context, LogLevel, PacketType  # type: ignore

    HAVE_SIGROK = True
except Exception:  # pragma: no cover - optional dependency
    HAVE_SIGROK = False
    ConfigKey = None  # type: ignore
    Context = None  # type: ignore
    LogLevel = None  # type: ignore
    PacketType = None  # type: ignore

logger = get_logger("sigrokcli.sr")

_INPUT_CHUNK = 4 * 1024 * 1024


class SigrokOutputWriter(OutputWriter):
    """Feeds raw packets to a libsigrok output module and writes what it returns."""

    def __init__(self, output: Any, stream: Any, ctx: Any = None):
        self.output = output
        self.stream = stream
        self.ctx = ctx

    def receive(self, event: Any) -> None:
        packet = getattr(event, "raw", None)
        if packet is None and isinstance(event, LogicChunk) and self.ctx is not None:
            # chunk trimmed at the sample limit
            packet = self.ctx.create_logic_packet(event.data.tobytes(), event.unitsize)
        if packet is None:
            return
        text = self.output.receive(packet)
        if not text:
            return
        self.stream.write(text.encode("utf-8") if isinstance(text, str) else bytes(text))
        self.stream.flush()


class SigrokAcquisition(AcquisitionLibrary):  # pragma: no cover - hardware specific
    """Thin convenience wrapper around sigrok.core.classes.Context."""

    name = "libsigrok"

    def __init__(self) -> None:
        if not HAVE_SIGROK:
            raise RuntimeError("sigrok.core not available")
        self._loglevel: Any = None
        self._open: Set[Any] = set()

    def set_verbosity(self, level: int) -> None:
        try:
            self._loglevel = LogLevel.get(int(level))
        except Exception as exc:
            raise AcquisitionError(f"Invalid log level {level}") from exc

    def create_context(self) -> Any:
        try:
            ctx = Context.create()
            if self._loglevel is not None:
                ctx.log_level = self._loglevel
            ctx.set_log_callback(self._log)
        except Exception as exc:
            raise AcquisitionError(f"Failed to initialize libsigrok: {exc}") from exc
        return ctx

    def destroy_context(self, ctx: Any) -> None:
        for device in list(self._open):
            self.close(device)
        del ctx

    @staticmethod
    def _log(level: Any, message: str) -> None:
        # Library messages never reach critical severity here, so they cannot abort the run.
        name = getattr(level, "name", str(level)).upper()
        if name == "ERR":
            logger.error("%s", message)
        elif name == "WARN":
            logger.warning("%s", message)
        elif name == "INFO":
            logger.info("%s", message)
        else:
            logger.debug("%s", message)

    def versions(self, ctx: Any) -> Dict[str, str]:
        return {"libsigrok": f"{ctx.package_version} (lib {ctx.lib_version})"}

    def drivers(self, ctx: Any) -> List[Tuple[str, str]]:
        return sorted((name, drv.long_name) for name, drv in ctx.drivers.items())

    def input_formats(self, ctx: Any) -> List[Tuple[str, str]]:
        return sorted((name, fmt.description) for name, fmt in ctx.input_formats.items())

    def output_formats(self, ctx: Any) -> List[Tuple[str, str]]:
        return sorted((name, fmt.description) for name, fmt in ctx.output_formats.items())

    def scan(self, ctx: Any, driver_spec: Optional[str] = None) -> List[Any]:
        if driver_spec:
            name, options = parse_generic_arg(driver_spec)
            if name not in ctx.drivers:
                raise ConfigurationError(f"Driver {name} not found.")
            try:
                return list(ctx.drivers[name].scan(**options))
            except Exception as exc:
                raise AcquisitionError(f"Scan with driver {name} failed: {exc}") from exc
        devices: List[Any] = []
        for name, drv in sorted(ctx.drivers.items()):
            try:
                devices.extend(drv.scan())
            except Exception as exc:
                logger.debug("Scan with driver %s failed: %s", name, exc)
        return devices

    def describe(self, device: Any) -> DeviceSummary:
        try:
            connection = device.connection_id()
        except Exception:
            connection = ""
        return DeviceSummary(
            driver=device.driver.name,
            vendor=device.vendor or "",
            model=device.model or "",
            version=device.version or "",
            connection=connection or "",
            channels=[ch.name for ch in device.channels],
        )

    def device_detail(self, device: Any) -> Dict[str, str]:
        detail: Dict[str, str] = {}
        for key in sorted(device.config_keys(), key=lambda k: k.identifier or ""):
            try:
                value = str(device.config_get(key))
            except Exception:
                value = "-"
            try:
                choices = device.config_list(key)
            except Exception:
                logger.debug("No value list for %s", key.identifier)
                choices = None
            if choices:
                value = f"{value} (supported: {choices})"
            detail[key.identifier] = value
        return detail

    def open(self, device: Any) -> None:
        try:
            device.open()
        except Exception as exc:
            raise AcquisitionError(str(exc)) from exc
        self._open.add(device)

    def close(self, device: Any) -> None:
        if device not in self._open:
            return
        self._open.discard(device)
        try:
            device.close()
        except Exception as exc:
            logger.warning("Failed to close device: %s", exc)

    def select_channels(self, device: Any, names: List[str]) -> None:
        wanted = set(names)
        for ch in device.channels:
            ch.enabled = ch.name in wanted

    @staticmethod
    def _key(name: str) -> Any:
        try:
            return ConfigKey.get_by_identifier(name)
        except Exception as exc:
            raise ConfigurationError(f"Unknown device option '{name}'.") from exc

    def configure(self, device: Any, settings: Dict[str, str]) -> None:
        for name, text in settings.items():
            key = self._key(name)
            try:
                value = key.parse_string(text)
            except Exception as exc:
                raise ConfigurationError(f"Invalid value '{text}' for option '{name}'.") from exc
            try:
                device.config_set(key, value)
            except Exception as exc:
                raise AcquisitionError(f"Failed to set {name}={text}: {exc}") from exc
            logger.info("Set %s=%s", name, text)

    def samplerate(self, device: Any) -> Optional[int]:
        try:
            return int(device.config_get(ConfigKey.SAMPLERATE))
        except Exception:
            return None

    def _apply_stop(self, device: Any, stop: StopCondition) -> None:
        limits: List[Tuple[Any, int]] = []
        if stop.samples:
            limits.append((ConfigKey.LIMIT_SAMPLES, stop.samples))
        if stop.frames:
            limits.append((ConfigKey.LIMIT_FRAMES, stop.frames))
        if stop.time_ms:
            if ConfigKey.LIMIT_MSEC in device.config_keys():
                limits.append((ConfigKey.LIMIT_MSEC, stop.time_ms))
            else:
                rate = self.samplerate(device)
                if not rate:
                    raise ConfigurationError("Device does not support time limits and has no samplerate.")
                limits.append((ConfigKey.LIMIT_SAMPLES, max(rate * stop.time_ms // 1000, 1)))
        for key, value in limits:
            try:
                device.config_set(key, value)
            except Exception as exc:
                raise AcquisitionError(f"Failed to set {key.identifier}: {exc}") from exc

    @staticmethod
    def _event(packet: Any) -> Any:
        ptype = packet.type
        if ptype == PacketType.HEADER:
            return FeedHeader(raw=packet)
        if ptype == PacketType.META:
            config = getattr(packet.payload, "config", {}) or {}
            rate = config.get(ConfigKey.SAMPLERATE)
            if rate:
                return FeedHeader(samplerate=int(rate), raw=packet)
            return FeedOther(raw=packet)
        if ptype == PacketType.LOGIC:
            payload = packet.payload
            data = np.asarray(payload.data, dtype=np.uint8).reshape(-1)
            return LogicChunk(data=data, unitsize=int(payload.unit_size), raw=packet)
        if ptype == PacketType.END:
            return FeedEnd(raw=packet)
        return FeedOther(raw=packet)

    def _run(self, session: Any, sink: FeedSink) -> None:
        session.add_datafeed_callback(lambda device, packet: sink(device, self._event(packet)))
        session.start()
        try:
            session.run()
        except KeyboardInterrupt:
            session.stop()
            raise
        except Exception as exc:
            raise AcquisitionError(str(exc)) from exc

    def run_capture(self, ctx: Any, device: Any, stop: StopCondition, sink: FeedSink) -> None:
        self._apply_stop(device, stop)
        session = ctx.create_session()
        session.add_device(device)
        self._run(session, sink)

    def load_file(self, ctx: Any, path: str, input_format: Optional[str], sink: FeedSink) -> None:
        if not input_format:
            try:
                session = ctx.load_session(path)
            except Exception as exc:
                raise AcquisitionError(f"Failed to load session file {path}: {exc}") from exc
            self._run(session, sink)
            return

        name, options = parse_generic_arg(input_format)
        if name not in ctx.input_formats:
            raise ConfigurationError(f"Unknown input format '{name}'.")
        session = ctx.create_session()
        session.add_datafeed_callback(lambda device, packet: sink(device, self._event(packet)))
        inp = ctx.input_formats[name].create_input(options) if options else ctx.input_formats[name].create_input()
        started = False
        try:
            with open(path, "rb") as fh:
                while True:
                    chunk = fh.read(_INPUT_CHUNK)
                    if not chunk:
                        break
                    inp.send(chunk)
                    if not started and inp.device is not None:
                        session.add_device(inp.device)
                        session.start()
                        started = True
            inp.end()
        except OSError as exc:
            raise AcquisitionError(f"Failed to read {path}: {exc}") from exc
        except Exception as exc:
            raise AcquisitionError(f"Failed to load {path}: {exc}") from exc
        finally:
            if started:
                session.stop()

    def create_output(self, ctx: Any, format_spec: str, device: Any, stream: Any) -> OutputWriter:
        name, options = parse_generic_arg(format_spec)
        if name not in ctx.output_formats:
            raise ConfigurationError(f"Unknown output format '{name}'.")
        fmt = ctx.output_formats[name]
        output = fmt.create_output(device, options) if options else fmt.create_output(device)
        return SigrokOutputWriter(output, stream, ctx)
