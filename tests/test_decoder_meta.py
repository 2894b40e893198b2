import textwrap

import pytest

from sigrokcli.core.errors import ConfigurationError, DecoderError
from sigrokcli.drivers import libsigrokdecode as srd

UART_PD = textwrap.dedent(
    """
    import sigrokdecode as srd

    class SamplerateError(Exception):
        pass

    class Decoder(srd.Decoder):
        api_version = 3
        id = 'uart'
        name = 'UART'
        longname = 'Universal Asynchronous Receiver/Transmitter'
        desc = 'Asynchronous, serial bus.'
        license = 'gplv2+'
        inputs = ['logic']
        outputs = ['uart']
        optional_channels = (
            {'id': 'rx', 'name': 'RX', 'desc': 'UART receive line'},
            {'id': 'tx', 'name': 'TX', 'desc': 'UART transmit line'},
        )
        options = (
            {'id': 'baudrate', 'desc': 'Baud rate', 'default': 115200},
            {'id': 'parity', 'desc': 'Parity', 'default': 'none', 'values': ('none', 'odd', 'even')},
            {'id': 'invert', 'desc': 'Invert', 'default': 0.5},
        )
        annotations = (
            ('rx-data', 'RX data'),
            ('tx-data', 'TX data'),
        )
        binary = (
            ('rx', 'RX dump'),
            ('tx', 'TX dump'),
        )
        annotation_rows = tuple(('row-%d' % i, 'Row', (i,)) for i in range(2))

        def decode(self):
            pass
    """
)


def _write_decoder(base, name, source):
    pd_dir = base / name
    pd_dir.mkdir(parents=True)
    path = pd_dir / "pd.py"
    path.write_text(source, encoding="utf-8")
    return path


def test_read_decoder_info(tmp_path) -> None:
    info = srd.read_decoder_info(str(_write_decoder(tmp_path, "uart", UART_PD)))
    assert info.id == "uart"
    assert info.longname == "Universal Asynchronous Receiver/Transmitter"
    assert info.channel_ids == ["rx", "tx"]
    assert all(ch.optional for ch in info.channels)
    assert [opt.id for opt in info.options] == ["baudrate", "parity", "invert"]
    assert info.options[0].default == "115200"
    assert info.options[1].values == ["none", "odd", "even"]
    assert info.annotation_ids == ["rx-data", "tx-data"]
    assert info.binary_ids == ["rx", "tx"]


def test_read_decoder_info_without_decoder_class(tmp_path) -> None:
    path = _write_decoder(tmp_path, "broken", "x = 1\n")
    with pytest.raises(DecoderError):
        srd.read_decoder_info(str(path))


def test_decoder_dirs_honours_environment(tmp_path, monkeypatch) -> None:
    env_dir = tmp_path / "env"
    extra_dir = tmp_path / "extra"
    env_dir.mkdir()
    extra_dir.mkdir()
    monkeypatch.setenv("SIGROKDECODE_DIR", str(env_dir))
    dirs = srd.decoder_dirs([str(extra_dir), str(tmp_path / "missing")])
    assert dirs[:2] == [str(env_dir), str(extra_dir)]
    assert str(tmp_path / "missing") not in dirs


def test_find_decoder(tmp_path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    path = _write_decoder(second, "uart", UART_PD)
    first.mkdir()
    assert srd.find_decoder("uart", [str(first), str(second)]) == str(path)
    assert srd.find_decoder("spi", [str(first), str(second)]) is None


def test_option_value_follows_default_type(tmp_path) -> None:
    info = srd.read_decoder_info(str(_write_decoder(tmp_path, "uart", UART_PD)))
    assert srd.option_value(info, "baudrate", "9600") == 9600
    assert srd.option_value(info, "baudrate", "0x10") == 16
    assert srd.option_value(info, "invert", "1.5") == 1.5
    assert srd.option_value(info, "parity", "odd") == "odd"
    with pytest.raises(ConfigurationError):
        srd.option_value(info, "baudrate", "fast")
