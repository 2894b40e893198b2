import pytest

from sigrokcli.core.errors import ConfigurationError
from sigrokcli.util.specs import (
    channel_indices,
    parse_channel_selection,
    parse_class_filter,
    parse_decoder_list,
    parse_generic_arg,
    parse_stack,
)
from sigrokcli.util.units import parse_size, parse_time_ms


def test_generic_arg_with_name() -> None:
    name, options = parse_generic_arg("fx2lafw:conn=1.6:probe_names=a,b")
    assert name == "fx2lafw"
    assert options == {"conn": "1.6", "probe_names": "a,b"}


def test_generic_arg_without_name() -> None:
    name, options = parse_generic_arg("samplerate=1M:pattern=sigrok", require_name=False)
    assert name is None
    assert list(options.items()) == [("samplerate", "1M"), ("pattern", "sigrok")]


@pytest.mark.parametrize("text", ["", ":conn=1", "conn=1.6"])
def test_generic_arg_requires_name(text) -> None:
    with pytest.raises(ConfigurationError):
        parse_generic_arg(text)


def test_decoder_list() -> None:
    specs = parse_decoder_list("uart:baudrate=115200, modbus")
    assert [spec.name for spec in specs] == ["uart", "modbus"]
    assert specs[0].options == {"baudrate": "115200"}
    assert specs[1].options == {}


def test_decoder_list_rejects_duplicates() -> None:
    with pytest.raises(ConfigurationError, match="more than once"):
        parse_decoder_list("uart,uart")


def test_stack() -> None:
    assert parse_stack("uart,modbus") == ["uart", "modbus"]
    with pytest.raises(ConfigurationError):
        parse_stack("uart,,modbus")


def test_class_filter() -> None:
    filters = parse_class_filter("uart=rx-data:tx-data,i2c")
    assert filters == {"uart": ["rx-data", "tx-data"], "i2c": []}


def test_channel_selection_ranges_and_names() -> None:
    available = ["D0", "D1", "D2", "D3", "D4", "CLK"]
    assert parse_channel_selection("D3,D0-D1,CLK", available) == ["D3", "D0", "D1", "CLK"]
    assert parse_channel_selection("D1-3", available) == ["D1", "D2", "D3"]


@pytest.mark.parametrize("text", ["D7", "D3-D1", "D0,,D1"])
def test_channel_selection_errors(text) -> None:
    with pytest.raises(ConfigurationError):
        parse_channel_selection(text, ["D0", "D1", "D2", "D3"])


def test_channel_indices() -> None:
    assert channel_indices({"rx": "D2", "tx": "0"}, ["D0", "D1", "D2"]) == {"rx": 2, "tx": 0}
    with pytest.raises(ConfigurationError):
        channel_indices({"rx": "CLK"}, ["D0"])


@pytest.mark.parametrize(
    "text, expected",
    [("1000", 1000), ("1k", 1000), ("2.5M", 2_500_000), ("1 MHz", 1_000_000), ("3g", 3_000_000_000), (None, None)],
)
def test_parse_size(text, expected) -> None:
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["abc", "1x", "-5"])
def test_parse_size_errors(text) -> None:
    with pytest.raises(ConfigurationError):
        parse_size(text)


@pytest.mark.parametrize(
    "text, expected",
    [("500", 500), ("10ms", 10), ("2s", 2000), ("1.5s", 1500), ("1m", 60_000), ("1h", 3_600_000)],
)
def test_parse_time(text, expected) -> None:
    assert parse_time_ms(text) == expected


@pytest.mark.parametrize("text", ["0", "fast", "-1s"])
def test_parse_time_errors(text) -> None:
    with pytest.raises(ConfigurationError):
        parse_time_ms(text)
