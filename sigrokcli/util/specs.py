"""Parsers for the generic option strings accepted on the command line.

Formats:
- generic argument: ``name:key=value:key2=value2``
- decoder list: ``uart:baudrate=115200,i2c``
- decoder stack: ``uart,modbus`` (bottom first)
- annotation filter: ``uart=rx_data:tx_data,i2c``
- channel selection: ``D0,D3-D5,CLK``
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from sigrokcli.core.errors import ConfigurationError
from sigrokcli.core.options import DecoderSpec


def parse_generic_arg(text: str, *, require_name: bool = True) -> Tuple[Optional[str], Dict[str, str]]:
    """Split ``name:k=v:k2=v2`` into the name and an ordered option mapping.

    With ``require_name=False`` the first token is treated as an option too,
    which is how ``--config`` strings are written (``samplerate=1M:probe=x``).
    """

    tokens = [tok for tok in str(text).split(":")]
    if not tokens or not tokens[0].strip():
        raise ConfigurationError(f"Invalid argument '{text}'.")
    name: Optional[str] = None
    if require_name:
        name = tokens.pop(0).strip()
        if "=" in name:
            raise ConfigurationError(f"Invalid argument '{text}': missing name.")
    options: Dict[str, str] = OrderedDict()
    for tok in tokens:
        if not tok:
            continue
        if "=" in tok:
            key, value = tok.split("=", 1)
        else:
            key, value = tok, ""
        key = key.strip()
        if not key:
            raise ConfigurationError(f"Invalid argument '{text}': empty key.")
        options[key] = value.strip()
    return name, options


def parse_decoder_list(text: str) -> List[DecoderSpec]:
    """Parse the comma separated decoder list into decoder specs."""

    specs: List[DecoderSpec] = []
    seen = set()
    for chunk in str(text).split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, options = parse_generic_arg(chunk)
        assert name is not None
        if name in seen:
            raise ConfigurationError(f"Protocol decoder '{name}' specified more than once.")
        seen.add(name)
        specs.append(DecoderSpec(name=name, options=dict(options)))
    if not specs:
        raise ConfigurationError("No protocol decoders specified.")
    return specs


def parse_stack(text: str) -> List[str]:
    """Parse an explicit stack string, bottom decoder first."""

    ids = [tok.strip() for tok in str(text).split(",")]
    if not ids or not ids[0]:
        raise ConfigurationError("Invalid protocol decoder stack.")
    if any(not tok for tok in ids):
        raise ConfigurationError("Invalid protocol decoder stack.")
    return ids


def parse_class_filter(text: str) -> Dict[str, List[str]]:
    """Parse ``dec=class:class,dec2`` into decoder -> class names.

    An empty class list means every class of that decoder.
    """

    filters: Dict[str, List[str]] = OrderedDict()
    for chunk in str(text).split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "=" in chunk:
            decoder, classes_text = chunk.split("=", 1)
            classes = [c.strip() for c in classes_text.split(":") if c.strip()]
        else:
            decoder, classes = chunk, []
        decoder = decoder.strip()
        if not decoder:
            raise ConfigurationError(f"Invalid decoder filter '{text}'.")
        filters.setdefault(decoder, [])
        for cls in classes:
            if cls not in filters[decoder]:
                filters[decoder].append(cls)
    if not filters:
        raise ConfigurationError(f"Invalid decoder filter '{text}'.")
    return filters


_RANGE_RE = re.compile(r"^(?P<prefix>\D*)(?P<first>\d+)-(?P=prefix)?(?P<last>\d+)$")


def parse_channel_selection(text: str, available: Sequence[str]) -> List[str]:
    """Resolve ``D0,D3-D5,CLK`` against the device channel names.

    Ranges expand over the shared name prefix. Names are returned in the
    order they were requested; unknown names are configuration errors.
    """

    names = list(available)
    selected: List[str] = []
    for tok in str(text).split(","):
        tok = tok.strip()
        if not tok:
            raise ConfigurationError(f"Invalid channel specification '{text}'.")
        match = _RANGE_RE.match(tok)
        if match and tok not in names:
            prefix = match.group("prefix")
            first, last = int(match.group("first")), int(match.group("last"))
            if last < first:
                raise ConfigurationError(f"Invalid channel range '{tok}'.")
            candidates = [f"{prefix}{idx}" for idx in range(first, last + 1)]
        else:
            candidates = [tok]
        for name in candidates:
            if name not in names:
                raise ConfigurationError(f"Unknown channel '{name}'.")
            if name not in selected:
                selected.append(name)
    return selected


def channel_indices(mapping: Dict[str, str], available: Sequence[str]) -> Dict[str, int]:
    """Map decoder channel ids to device channel indices (``rx=D0`` or ``rx=0``)."""

    names = list(available)
    resolved: Dict[str, int] = {}
    for pd_channel, dev_channel in mapping.items():
        if dev_channel in names:
            resolved[pd_channel] = names.index(dev_channel)
        elif dev_channel.isdigit():
            resolved[pd_channel] = int(dev_channel)
        else:
            raise ConfigurationError(f"Unknown channel '{dev_channel}' for decoder channel '{pd_channel}'.")
    return resolved
