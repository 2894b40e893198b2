import pytest

from sigrokcli import cli
from sigrokcli.core.options import AnnotationOutput, BinaryOutput, select_output_sink
from conftest import FakeAcquisition, FakeDecoder


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("SIGROKCLI_LOGLEVEL", raising=False)
    args = cli.parse_args([])
    assert not hasattr(args, "_cli_overrides")
    options = cli.build_run_options(args)
    assert options.loglevel == 2
    assert options.output_format == "bits"
    assert not options.version and not options.scan and not options.show
    assert not options.stop.requested
    assert not options.decoding_requested
    assert "sigrok-cli" in options.usage


def test_env_loglevel_applies_without_flag(monkeypatch) -> None:
    monkeypatch.setenv("SIGROKCLI_LOGLEVEL", "4")
    assert cli.parse_args([]).loglevel == 4
    assert cli.parse_args(["-l", "1"]).loglevel == 1


def test_capture_options() -> None:
    args = cli.parse_args(["-d", "demo", "-c", "samplerate=1M", "-C", "D0,D1", "--samples", "10k", "-O", "hex"])
    options = cli.build_run_options(args)
    assert options.driver == "demo"
    assert options.config == "samplerate=1M"
    assert options.channels == "D0,D1"
    assert options.stop.samples == 10_000
    assert options.stop.requested
    assert options.output_format == "hex"


def test_time_and_frames() -> None:
    assert cli.build_run_options(cli.parse_args(["--time", "2s"])).stop.time_ms == 2000
    assert cli.build_run_options(cli.parse_args(["--frames", "3"])).stop.frames == 3
    assert cli.build_run_options(cli.parse_args(["--continuous"])).stop.continuous


def test_decoder_options_and_sink() -> None:
    args = cli.parse_args(["-i", "cap.sr", "-P", "uart,modbus", "-S", "uart,modbus", "-B", "uart=rx"])
    options = cli.build_run_options(args)
    assert options.decoding_requested
    assert options.decoder_stack == "uart,modbus"
    assert select_output_sink(options) == BinaryOutput("uart=rx")


def test_annotation_sink_is_default() -> None:
    options = cli.build_run_options(cli.parse_args(["-i", "cap.sr", "-P", "uart"]))
    assert select_output_sink(options) == AnnotationOutput()


@pytest.mark.parametrize(
    "argv",
    [
        ["-l", "9"],
        ["--frames", "0"],
        ["--samples", "0"],
        ["--samples", "lots"],
        ["--time", "0"],
        ["--samples", "1k", "--time", "1s"],
        ["-S", "uart"],
        ["-A", "uart"],
        ["-B", "uart"],
        ["-M", "uart"],
        ["-I", "binary"],
        ["--bogus"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(argv, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.parse_args(argv)
    assert exc.value.code == 2
    assert "usage:" in capsys.readouterr().err


def test_main_runs_with_resolved_libraries(monkeypatch, capsys) -> None:
    calls = []
    acquisition = FakeAcquisition(calls)
    monkeypatch.setattr(cli, "resolve_libraries", lambda: (acquisition, FakeDecoder(calls)))
    assert cli.main(["--scan"]) == 0
    out = capsys.readouterr().out
    assert "The following devices were found:" in out
    assert ("sr", "scan") in calls
    assert ("sr", "destroy_context") in calls


def test_main_without_sigrok_aborts(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli, "HAVE_SIGROK", False)
    with pytest.raises(SystemExit) as exc:
        cli.main(["--scan"])
    assert exc.value.code == 1
    assert "not installed" in capsys.readouterr().err
