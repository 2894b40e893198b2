#!/usr/bin/env python3
"""sigrok-cli command-line entrypoint (package module)."""

from __future__ import annotations

import argparse
import sys
from typing import Any, List, Optional, Set, Tuple

from sigrokcli.core.errors import ConfigurationError
from sigrokcli.core.options import RunOptions, StopCondition
from sigrokcli.core.run import run
from sigrokcli.drivers.base import AcquisitionLibrary, DecoderLibrary
from sigrokcli.drivers.libsigrok import HAVE_SIGROK, SigrokAcquisition
from sigrokcli.drivers.libsigrokdecode import HAVE_SRD, SigrokDecode
from sigrokcli.util.logging import DEFAULT_LOGLEVEL, SR_LOG_SPEW, configure_logging, env_loglevel, get_logger
from sigrokcli.util.units import parse_size, parse_time_ms


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sigrok-cli",
        description="Command-line front end for logic analyzers, oscilloscopes and protocol decoders",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("-V", "--version", action="store_true", help="Show version and supported drivers, formats and decoders")
    p.add_argument("-l", "--loglevel", type=int, help=f"Set log level 0-{SR_LOG_SPEW} (default {DEFAULT_LOGLEVEL})")
    p.add_argument("--log-json", dest="log_json", type=str, help="Also append JSON-formatted diagnostics to this file")

    p.add_argument("-d", "--driver", type=str, help="Use only this driver, e.g. 'fx2lafw' or 'demo:conn=...'")
    p.add_argument("-c", "--config", type=str, help="Device settings as key=value pairs separated by ':' (e.g. 'samplerate=1M')")
    p.add_argument("-C", "--channels", type=str, help="Channels to use, e.g. 'D0,D2-D5'")

    p.add_argument("-i", "--input-file", dest="input_file", type=str, help="Load samples from a file instead of a device")
    p.add_argument("-I", "--input-format", dest="input_format", type=str, help="Input format of --input-file")
    p.add_argument("-o", "--output-file", dest="output_file", type=str, help="Write raw output to this file instead of stdout")
    p.add_argument("-O", "--output-format", dest="output_format", type=str, help="Output format for raw capture data (default bits)")

    p.add_argument("-P", "--protocol-decoders", dest="decoders", type=str, help="Protocol decoders to run, e.g. 'uart:baudrate=115200'")
    p.add_argument("-S", "--protocol-decoder-stack", dest="decoder_stack", type=str, help="Protocol decoder stack, bottom first, e.g. 'uart,modbus'")
    p.add_argument("-A", "--protocol-decoder-annotations", dest="annotations", type=str, help="Annotations to show, e.g. 'uart=rx_data:tx_data'")
    p.add_argument("-B", "--protocol-decoder-binary", dest="binary", type=str, help="Binary decoder output to write to stdout, e.g. 'uart=rxtx'")
    p.add_argument("-M", "--protocol-decoder-meta", dest="meta", type=str, help="Decoders whose metadata output to show")

    p.add_argument("--scan", dest="scan", action="store_true", help="Scan for devices")
    p.add_argument("--show", dest="show", action="store_true", help="Show device or decoder details")
    p.add_argument("--set", dest="set_config", action="store_true", help="Apply --config to the device without acquiring")

    group = p.add_mutually_exclusive_group()
    group.add_argument("--samples", type=str, help="Number of samples to acquire (e.g. '10k')")
    group.add_argument("--time", type=str, help="How long to sample (e.g. '500ms', '2s')")
    group.add_argument("--frames", type=int, help="Number of frames to acquire")
    group.add_argument("--continuous", action="store_true", help="Sample continuously until interrupted")
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = build_parser()
    args = p.parse_args(argv)
    args._cli_overrides = set()

    _set_default(args, args._cli_overrides, "version", False)
    _set_default(args, args._cli_overrides, "loglevel", DEFAULT_LOGLEVEL)
    _set_default(args, args._cli_overrides, "log_json", None)
    _set_default(args, args._cli_overrides, "driver", None)
    _set_default(args, args._cli_overrides, "config", None)
    _set_default(args, args._cli_overrides, "channels", None)
    _set_default(args, args._cli_overrides, "input_file", None)
    _set_default(args, args._cli_overrides, "input_format", None)
    _set_default(args, args._cli_overrides, "output_file", None)
    _set_default(args, args._cli_overrides, "output_format", "bits")
    _set_default(args, args._cli_overrides, "decoders", None)
    _set_default(args, args._cli_overrides, "decoder_stack", None)
    _set_default(args, args._cli_overrides, "annotations", None)
    _set_default(args, args._cli_overrides, "binary", None)
    _set_default(args, args._cli_overrides, "meta", None)
    _set_default(args, args._cli_overrides, "scan", False)
    _set_default(args, args._cli_overrides, "show", False)
    _set_default(args, args._cli_overrides, "set_config", False)
    _set_default(args, args._cli_overrides, "samples", None)
    _set_default(args, args._cli_overrides, "time", None)
    _set_default(args, args._cli_overrides, "frames", None)
    _set_default(args, args._cli_overrides, "continuous", False)

    if "loglevel" not in args._cli_overrides:
        args.loglevel = env_loglevel()

    delattr(args, "_cli_overrides")

    if not 0 <= args.loglevel <= SR_LOG_SPEW:
        p.error(f"--loglevel must be between 0 and {SR_LOG_SPEW}")
    if args.frames is not None and args.frames <= 0:
        p.error("--frames must be > 0")
    try:
        args.samples = parse_size(args.samples)
        args.time = parse_time_ms(args.time)
    except ConfigurationError as exc:
        p.error(str(exc))
    if args.samples == 0:
        p.error("--samples must be > 0")
    for attr, flag in (("decoder_stack", "-S"), ("annotations", "-A"), ("binary", "-B"), ("meta", "-M")):
        if getattr(args, attr) and not args.decoders:
            p.error(f"{flag} requires protocol decoders (-P)")
    if args.input_format and not args.input_file:
        p.error("--input-format requires --input-file")

    args.usage = p.format_help()
    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def build_run_options(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        loglevel=args.loglevel,
        version=args.version,
        scan=args.scan,
        show=args.show,
        driver=args.driver,
        config=args.config,
        channels=args.channels,
        set_config=args.set_config,
        input_file=args.input_file,
        input_format=args.input_format,
        output_file=args.output_file,
        output_format=args.output_format,
        stop=StopCondition(
            samples=args.samples,
            time_ms=args.time,
            frames=args.frames,
            continuous=args.continuous,
        ),
        decoders=args.decoders,
        decoder_stack=args.decoder_stack,
        annotations=args.annotations,
        binary=args.binary,
        meta=args.meta,
        usage=getattr(args, "usage", ""),
    )


def resolve_libraries() -> Tuple[AcquisitionLibrary, Optional[DecoderLibrary]]:
    """Resolve library support once; decoder support may be absent."""

    logger = get_logger(__name__)
    if not HAVE_SIGROK:
        logger.critical("libsigrok Python bindings (sigrok.core) not installed.")
    decoder: Optional[DecoderLibrary] = SigrokDecode() if HAVE_SRD else None
    if decoder is None:
        logger.debug("libsigrokdecode not found, protocol decoding disabled")
    return SigrokAcquisition(), decoder


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(loglevel=args.loglevel, json_file=args.log_json)
    options = build_run_options(args)
    acquisition, decoder = resolve_libraries()
    return run(options, acquisition, decoder)


if __name__ == "__main__":
    sys.exit(main())
