"""Size and time string parsing helpers for CLI arguments."""

from __future__ import annotations

from typing import Any, Optional

from sigrokcli.core.errors import ConfigurationError


_SIZE_SUFFIXES = {
    "": 1,
    "k": 1_000,
    "m": 1_000_000,
    "g": 1_000_000_000,
}

_TIME_SUFFIXES_MS = {
    "ms": 1.0,
    "s": 1000.0,
    "m": 60_000.0,
    "h": 3_600_000.0,
}


def parse_size(spec: Optional[Any]) -> Optional[int]:
    """Parse strings like '1000', '1k', '2.5M', '1 MHz', returning an integer."""

    if spec is None:
        return None
    if isinstance(spec, int):
        return spec
    text = str(spec).strip().lower()
    if not text:
        return None
    if text.endswith("hz"):
        text = text[:-2].strip()
    unit = ""
    if text and text[-1].isalpha():
        unit = text[-1]
        text = text[:-1].strip()
    if unit not in _SIZE_SUFFIXES:
        raise ConfigurationError(f"Invalid size '{spec}'.")
    try:
        value = float(text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid size '{spec}'.") from exc
    if value < 0:
        raise ConfigurationError(f"Invalid size '{spec}'.")
    return int(round(value * _SIZE_SUFFIXES[unit]))


def parse_time_ms(spec: Optional[Any]) -> Optional[int]:
    """Parse strings like '500', '10ms', '2s', '1m', returning milliseconds.

    A bare number is taken as milliseconds.
    """

    if spec is None:
        return None
    if isinstance(spec, (int, float)):
        return int(spec)
    text = str(spec).strip().lower()
    if not text:
        return None
    unit = "ms"
    for suffix in ("ms", "s", "m", "h"):
        if text.endswith(suffix):
            unit = suffix
            text = text[: -len(suffix)].strip()
            break
    try:
        value = float(text)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid time '{spec}'.") from exc
    if value <= 0:
        raise ConfigurationError(f"Invalid time '{spec}'.")
    return int(round(value * _TIME_SUFFIXES_MS[unit]))
