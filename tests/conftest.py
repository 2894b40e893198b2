import io
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pytest

from sigrokcli.core.errors import AcquisitionError, DecoderError
from sigrokcli.drivers.base import (
    AcquisitionLibrary,
    DecoderChannel,
    DecoderInfo,
    DecoderLibrary,
    DecoderOption,
    DeviceSummary,
    FeedEnd,
    FeedHeader,
    LogicChunk,
    OutputWriter,
)
from sigrokcli.util.logging import configure_logging


class FakeDevice:
    def __init__(self, driver: str = "demo", channels: Optional[List[str]] = None):
        self.driver = driver
        self.channels = channels if channels is not None else ["D0", "D1", "D2", "D3"]


class FakeWriter(OutputWriter):
    def __init__(self) -> None:
        self.events: List[Any] = []
        self.closed = False

    def receive(self, event: Any) -> None:
        self.events.append(event)

    def close(self) -> None:
        self.closed = True


def default_events() -> List[Any]:
    return [
        FeedHeader(samplerate=1_000_000),
        LogicChunk(data=np.array([0x01, 0x00, 0x01, 0x01], dtype=np.uint8), unitsize=1),
        FeedEnd(),
    ]


class FakeAcquisition(AcquisitionLibrary):
    """Records lifecycle and device calls as ("sr", name) tuples."""

    def __init__(self, calls: List[Tuple[str, str]], *, devices=None, fail=(), events=None):
        self.calls = calls
        self.devices = [FakeDevice()] if devices is None else devices
        self.fail = set(fail)
        self.events = default_events() if events is None else events
        self.configured: Dict[str, str] = {}
        self.selected: Optional[List[str]] = None
        self.stop = None
        self.writers: List[FakeWriter] = []

    def _record(self, name: str) -> None:
        self.calls.append(("sr", name))
        if name in self.fail:
            raise AcquisitionError(f"{name} failed")

    def set_verbosity(self, level):
        self._record("set_verbosity")

    def create_context(self):
        self._record("create_context")
        return "sr-ctx"

    def destroy_context(self, ctx):
        self._record("destroy_context")

    def versions(self, ctx):
        return {"libsigrok": "0.5.2"}

    def drivers(self, ctx):
        return [("demo", "Demo driver and pattern generator")]

    def input_formats(self, ctx):
        return [("vcd", "Value Change Dump")]

    def output_formats(self, ctx):
        return [("bits", "ASCII rendering using 0/1")]

    def scan(self, ctx, driver_spec=None):
        self._record("scan")
        return list(self.devices)

    def describe(self, device):
        return DeviceSummary(driver=device.driver, vendor="Demo", model="Demo device", channels=list(device.channels))

    def device_detail(self, device):
        return {"samplerate": "200 kHz"}

    def open(self, device):
        self._record("open")

    def close(self, device):
        self._record("close")

    def select_channels(self, device, names):
        self._record("select_channels")
        self.selected = list(names)

    def configure(self, device, settings):
        self._record("configure")
        self.configured.update(settings)

    def samplerate(self, device):
        return 1_000_000

    def run_capture(self, ctx, device, stop, sink):
        self._record("run_capture")
        self.stop = stop
        for event in self.events:
            sink(device, event)

    def load_file(self, ctx, path, input_format, sink):
        self._record("load_file")
        for event in self.events:
            sink(self.devices[0] if self.devices else None, event)

    def create_output(self, ctx, format_spec, device, stream):
        self._record("create_output")
        writer = FakeWriter()
        self.writers.append(writer)
        return writer


UART = DecoderInfo(
    id="uart",
    name="UART",
    longname="Universal Asynchronous Receiver/Transmitter",
    desc="Asynchronous, serial bus.",
    license="gplv2+",
    channels=[
        DecoderChannel(id="rx", name="RX", desc="UART receive line", optional=True),
        DecoderChannel(id="tx", name="TX", desc="UART transmit line", optional=True),
    ],
    options=[DecoderOption(id="baudrate", desc="Baud rate", default="115200")],
    annotations=[("rx-data", "RX data"), ("tx-data", "TX data")],
    binary=[("rx", "RX dump"), ("tx", "TX dump"), ("rxtx", "RX/TX dump")],
)

MODBUS = DecoderInfo(
    id="modbus",
    name="Modbus",
    longname="Modbus RTU over RS232/RS485",
    annotations=[("sc-server-id", "Server ID"), ("sc-function", "Function")],
)


class FakeDecoder(DecoderLibrary):
    """Records calls as ("srd", name) tuples."""

    def __init__(self, calls: List[Tuple[str, str]], *, fail=(), infos=None):
        self.calls = calls
        self.fail = set(fail)
        self.infos = {"uart": UART, "modbus": MODBUS} if infos is None else infos
        self.registered: List[str] = []
        self.stack: List[str] = []
        self.callbacks: List[Tuple[str, Any]] = []
        self.channel_maps: Dict[str, Dict[str, int]] = {}
        self.started_with: List[Optional[int]] = []
        self.sent: List[Tuple[int, bytes, int]] = []

    def _record(self, name: str) -> None:
        self.calls.append(("srd", name))
        if name in self.fail:
            raise DecoderError(f"{name} failed")

    def set_verbosity(self, level):
        self._record("set_verbosity")

    def create_context(self):
        self._record("create_context")
        return "srd-ctx"

    def destroy_context(self, ctx):
        self._record("destroy_context")

    def create_session(self, ctx):
        self._record("create_session")
        return "srd-session"

    def destroy_session_subsystem(self, session):
        self._record("destroy_session_subsystem")

    def version(self):
        return "0.5.3"

    def list_decoders(self, ctx):
        return sorted((info.id, info.longname) for info in self.infos.values())

    def decoder_info(self, ctx, name):
        if name not in self.infos:
            raise DecoderError(f"Protocol decoder {name} not found")
        return self.infos[name]

    def register_decoders(self, session, decoders):
        self._record("register_decoders")
        self.registered = [spec.name for spec in decoders]

    def build_stack(self, session, stack):
        self._record("build_stack")
        self.stack = stack.names

    def register_output_callback(self, session, kind, callback):
        self._record("register_output_callback")
        self.callbacks.append((kind, callback))

    def map_channels(self, session, name, mapping):
        self.channel_maps[name] = dict(mapping)

    def start(self, session, samplerate):
        self._record("start")
        self.started_with.append(samplerate)

    def send(self, session, start_sample, data, unitsize):
        self.sent.append((start_sample, bytes(np.asarray(data, dtype=np.uint8)), unitsize))


@pytest.fixture
def calls() -> List[Tuple[str, str]]:
    return []


@pytest.fixture(autouse=True)
def log_stream() -> io.StringIO:
    stream = io.StringIO()
    configure_logging(loglevel=2, stream=stream)
    return stream
