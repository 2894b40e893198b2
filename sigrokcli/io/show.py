"""Plain-text listings printed by the informational actions."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from sigrokcli.drivers.base import DecoderInfo, DeviceSummary


def _table(title: str, rows: Iterable[Tuple[str, str]]) -> List[str]:
    rows = list(rows)
    if not rows:
        return []
    width = max(len(name) for name, _ in rows)
    lines = [title]
    lines.extend(f"  {name:<{width}}  {desc}".rstrip() for name, desc in rows)
    lines.append("")
    return lines


def format_version(
    versions: Dict[str, str],
    drivers: List[Tuple[str, str]],
    input_formats: List[Tuple[str, str]],
    output_formats: List[Tuple[str, str]],
    decoder_version: Optional[str] = None,
    decoders: Optional[List[Tuple[str, str]]] = None,
) -> List[str]:
    lines = ["sigrokcli"]
    for name, ver in versions.items():
        lines.append(f"- {name} {ver}")
    if decoder_version:
        lines.append(f"- libsigrokdecode {decoder_version}")
    lines.append("")
    lines.extend(_table("Supported hardware drivers:", drivers))
    lines.extend(_table("Supported input formats:", input_formats))
    lines.extend(_table("Supported output formats:", output_formats))
    if decoders:
        lines.extend(_table("Supported protocol decoders:", decoders))
    return lines


def format_device_list(devices: List[DeviceSummary]) -> List[str]:
    lines = ["The following devices were found:"]
    for dev in devices:
        conn = f":conn={dev.connection}" if dev.connection else ""
        channels = ", ".join(dev.channels)
        suffix = f" with {len(dev.channels)} channels: {channels}" if dev.channels else ""
        lines.append(f"{dev.driver}{conn} - {dev.label}{suffix}")
    return lines


def format_device_detail(summary: DeviceSummary, detail: Dict[str, str]) -> List[str]:
    lines = [f"Driver functions for {summary.driver}:", f"  {summary.label}"]
    if summary.channels:
        lines.append("Channels:")
        lines.extend(f"  {name}" for name in summary.channels)
    if detail:
        lines.append("Supported configuration options:")
        width = max(len(key) for key in detail)
        lines.extend(f"  {key:<{width}}  {value}".rstrip() for key, value in detail.items())
    return lines


def format_decoder_detail(info: DecoderInfo) -> List[str]:
    lines = [
        f"ID: {info.id}",
        f"Name: {info.name}",
        f"Long name: {info.longname}",
        f"Description: {info.desc}",
        f"License: {info.license}",
    ]
    required = [ch for ch in info.channels if not ch.optional]
    optional = [ch for ch in info.channels if ch.optional]
    for title, channels in (("Required channels:", required), ("Optional channels:", optional)):
        lines.append(title)
        if not channels:
            lines.append("None.")
        for ch in channels:
            lines.append(f"- {ch.id} ({ch.name}): {ch.desc}")
    lines.append("Annotation classes:")
    if not info.annotations:
        lines.append("None.")
    lines.extend(f"- {ann_id}: {desc}" for ann_id, desc in info.annotations)
    lines.append("Binary classes:")
    if not info.binary:
        lines.append("None.")
    lines.extend(f"- {bin_id}: {desc}" for bin_id, desc in info.binary)
    lines.append("Options:")
    if not info.options:
        lines.append("No options available.")
    for opt in info.options:
        text = f"- {opt.id}: {opt.desc}"
        if opt.values:
            text += f" ({', '.join(opt.values)})"
        if opt.default is not None:
            text += f" (default {opt.default})"
        lines.append(text)
    return lines
