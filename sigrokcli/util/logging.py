"""Diagnostic logging for sigrokcli.

All diagnostics go to stderr so that stdout can carry capture or decoder
data that the user is piping into another tool.

Provides:
- Console handler (stderr) gated by the sigrok numeric log level
- Flush after every record
- Abort on critical records (raises CriticalAbort after the write)
- Optional JSON lines file handler

Usage:
    from sigrokcli.util.logging import get_logger, configure_logging

    configure_logging(loglevel=3)
    logger = get_logger(__name__)
    logger.info("Scanning %s", driver)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from sigrokcli.util.exit_codes import ExitCode


# Module-level state
_configured = False
_root_logger_name = "sigrokcli"

# sigrok numeric log levels
SR_LOG_NONE = 0
SR_LOG_ERR = 1
SR_LOG_WARN = 2
SR_LOG_INFO = 3
SR_LOG_DBG = 4
SR_LOG_SPEW = 5

DEFAULT_LOGLEVEL = SR_LOG_WARN


class CriticalAbort(SystemExit):
    """Raised by the console handler once a critical record has been written."""

    def __init__(self, message: str):
        super().__init__(ExitCode.CRITICAL_ABORT)
        self.message = message


def python_level(loglevel: int) -> int:
    """Map a sigrok log level (0..5) onto a logging threshold."""
    if loglevel > SR_LOG_INFO:
        return logging.DEBUG
    if loglevel == SR_LOG_INFO:
        return logging.INFO
    return logging.WARNING


class VerbosityFilter(logging.Filter):
    """Pass warnings and worse always, everything else only above SR_LOG_WARN."""

    def __init__(self, loglevel: int):
        super().__init__()
        self.loglevel = loglevel

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return self.loglevel > SR_LOG_WARN and record.levelno >= python_level(self.loglevel)


class AbortingStreamHandler(logging.StreamHandler):
    """Stream handler that flushes every record and aborts on critical ones."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        if record.levelno >= logging.CRITICAL:
            raise CriticalAbort(record.getMessage())


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("device", "decoder", "error_type"):
            if hasattr(record, key):
                output[key] = getattr(record, key)
        if record.exc_info:
            output["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(output, default=str)


class ConsoleFormatter(logging.Formatter):
    """Console format: the bare message, or a timestamped line when verbose."""

    def __init__(self, verbose: bool = False):
        super().__init__()
        self.verbose = verbose

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self.verbose:
            ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            name = record.name.replace("sigrokcli.", "")
            msg = f"[{ts}] {record.levelname:8} [{name}] {msg}"
        if record.exc_info:
            msg += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return msg


def env_loglevel() -> int:
    raw = os.environ.get("SIGROKCLI_LOGLEVEL", "").strip()
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_LOGLEVEL


def configure_logging(
    *,
    loglevel: Optional[int] = None,
    json_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the sigrokcli logging subsystem.

    Args:
        loglevel: sigrok log level 0..5. Defaults to SIGROKCLI_LOGLEVEL or 2.
        json_file: Optional path to write JSON-formatted logs.
        stream: Console stream; defaults to sys.stderr.

    Calling it again replaces the installed handlers.
    """
    global _configured

    if loglevel is None:
        loglevel = env_loglevel()

    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = AbortingStreamHandler(stream if stream is not None else sys.stderr)
    console_handler.addFilter(VerbosityFilter(loglevel))
    console_handler.setFormatter(ConsoleFormatter(verbose=loglevel >= SR_LOG_SPEW))

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
            file_handler.setLevel(python_level(loglevel))
            file_handler.setFormatter(JSONFormatter())
            # Installed first so a critical record reaches the file before the abort.
            logger.addHandler(file_handler)
        except OSError as exc:
            logger.addHandler(console_handler)
            logger.propagate = False
            _configured = True
            logger.warning("Failed to open JSON log file %s: %s", json_file, exc)
            return

    logger.addHandler(console_handler)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the sigrokcli namespace.

    If configure_logging() has not been called, a default configuration
    is applied automatically.
    """
    global _configured
    if not _configured:
        configure_logging()

    if not name.startswith(_root_logger_name):
        if name == "__main__":
            name = f"{_root_logger_name}.main"
        else:
            name = f"{_root_logger_name}.{name}"

    return logging.getLogger(name)
