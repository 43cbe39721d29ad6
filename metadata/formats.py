"""Adaptive stream format parsing for the player config ``adaptive_fmts`` field."""

from __future__ import annotations

import urllib.parse
from typing import Any

from yt_dlp.utils import float_or_none

from metadata.types import Format

_ITAG_NOTES: tuple[tuple[str, frozenset[str]], ...] = (
    ("3D", frozenset({"82", "83", "84", "85", "100", "101", "102"})),
    ("HLS", frozenset({"91", "92", "93", "94", "95", "96", "132", "151"})),
    ("DASH audio", frozenset({"139", "140", "141", "256", "258", "325", "328", "249", "250", "251"})),
    (
        "DASH video",
        frozenset(
            {
                "133", "134", "135", "136", "137", "138", "160", "212", "264", "298", "299",
                "266", "167", "168", "169", "170", "218", "219", "278", "242", "245", "244",
                "243", "246", "247", "248", "271", "272", "302", "303", "308", "313", "315",
            }
        ),
    ),
)


def format_note_for_itag(itag: str) -> str:
    for note, itags in _ITAG_NOTES:
        if itag in itags:
            return note
    return ""


def _number(value: str) -> float:
    return float_or_none(value) or 0


def _ext_from_mime(mime: str) -> str:
    start = mime.find("/")
    end = mime.find(";")
    if start == -1:
        return ""
    if end == -1 or end < start:
        end = len(mime)
    return mime[start + 1 : end].strip()


def parse_format(raw: dict[str, list[str]]) -> Format:
    """Build a :class:`Format` from one url-encoded ``adaptive_fmts`` entry."""
    values = {key: items[0] for key, items in raw.items() if items}
    fmt = Format(
        format_id=values.get("itag", ""),
        url=values.get("url", ""),
        bitrate=_number(values.get("bitrate", "")),
        clen=_number(values.get("clen", "")),
        eotf=values.get("eotf", ""),
        fps=_number(values.get("fps", "")),
        index=values.get("index", ""),
        init=values.get("init", ""),
        lmt=_number(values.get("lmt", "")),
        primaries=values.get("primaries", ""),
        quality_label=values.get("quality_label", ""),
        type=values.get("type", ""),
    )
    if fmt.type:
        fmt.ext = _ext_from_mime(fmt.type)
    size = values.get("size", "")
    if size:
        fmt.size = size
        width, _, height = size.partition("x")
        fmt.width = _number(width)
        fmt.height = _number(height)
    fmt.format_note = format_note_for_itag(fmt.format_id)
    fmt.format = f"{fmt.format_id} - {fmt.format_note or fmt.type}"
    return fmt


def parse_adaptive_formats(player_args: dict[str, Any] | None) -> list[Format]:
    raw = (player_args or {}).get("adaptive_fmts")
    if not isinstance(raw, str) or not raw:
        return []
    formats = []
    for chunk in raw.split(","):
        if not chunk:
            continue
        formats.append(parse_format(urllib.parse.parse_qs(chunk)))
    return formats
