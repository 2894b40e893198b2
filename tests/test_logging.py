import io
import json

import pytest

from sigrokcli.util.exit_codes import ExitCode
from sigrokcli.util.logging import CriticalAbort, configure_logging, get_logger


def test_warnings_only_at_default_level() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=2, stream=stream)
    logger = get_logger("test")

    logger.debug("debug detail")
    logger.info("info detail")
    logger.warning("careful")
    logger.error("broken")

    assert stream.getvalue() == "careful\nbroken\n"


def test_info_level_passes_info_but_not_debug() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=3, stream=stream)
    logger = get_logger("test")

    logger.debug("debug detail")
    logger.info("info detail")

    assert stream.getvalue() == "info detail\n"


def test_debug_level_passes_everything() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=4, stream=stream)

    get_logger("test").debug("debug detail")

    assert stream.getvalue() == "debug detail\n"


def test_warnings_pass_even_when_quiet() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=0, stream=stream)

    get_logger("test").warning("still shown")

    assert "still shown" in stream.getvalue()


def test_critical_writes_then_aborts() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=2, stream=stream)

    with pytest.raises(SystemExit) as excinfo:
        get_logger("test").critical("No devices found.")

    assert isinstance(excinfo.value, CriticalAbort)
    assert excinfo.value.code == ExitCode.CRITICAL_ABORT == 1
    assert excinfo.value.message == "No devices found."
    assert stream.getvalue() == "No devices found.\n"


def test_diagnostics_never_reach_stdout(capsys) -> None:
    configure_logging(loglevel=5)
    get_logger("test").warning("on stderr")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "on stderr" in captured.err


def test_library_domains_share_the_sink() -> None:
    stream = io.StringIO()
    configure_logging(loglevel=2, stream=stream)

    get_logger("sigrokcli.sr").warning("from libsigrok")
    get_logger("sigrokcli.srd").warning("from libsigrokdecode")

    assert stream.getvalue() == "from libsigrok\nfrom libsigrokdecode\n"


def test_json_file_receives_critical_before_abort(tmp_path) -> None:
    path = tmp_path / "log.jsonl"
    configure_logging(loglevel=2, json_file=str(path), stream=io.StringIO())

    with pytest.raises(CriticalAbort):
        get_logger("test").critical("fatal")

    record = json.loads(path.read_text().splitlines()[-1])
    assert record["level"] == "CRITICAL"
    assert record["message"] == "fatal"


def test_env_loglevel_default(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setenv("SIGROKCLI_LOGLEVEL", "3")
    configure_logging(stream=stream)

    get_logger("test").info("verbose via env")

    assert stream.getvalue() == "verbose via env\n"
