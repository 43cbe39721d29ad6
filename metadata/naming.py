"""Artifact naming helpers used when writing an archived video to disk."""

from __future__ import annotations

import re
from typing import Any

_INVALID_FS_CHARS_RE = re.compile(r'[<>:"\\|?*\x00-\x1f]')
_SEPARATOR_RE = re.compile(r"[\s/]+")
_MAX_TITLE_LENGTH = 150


def sanitize_title(text: Any) -> str:
    """Return the title as a single filesystem-safe component.

    Whitespace runs and ``/`` become ``_``; characters that are invalid on
    common filesystems are dropped.
    """
    sanitized = _INVALID_FS_CHARS_RE.sub("", str(text or "").strip())
    sanitized = _SEPARATOR_RE.sub("_", sanitized)
    sanitized = sanitized[:_MAX_TITLE_LENGTH].rstrip(" .")
    return sanitized or "untitled"


def artifact_stem(video_id: str, title: str) -> str:
    return f"{video_id}_{title}"


def description_filename(video_id: str, title: str) -> str:
    return f"{artifact_stem(video_id, title)}.description"


def info_filename(video_id: str, title: str) -> str:
    return f"{artifact_stem(video_id, title)}.info.json"


def annotations_filename(video_id: str, title: str) -> str:
    return f"{artifact_stem(video_id, title)}.annotations.xml"


def thumbnail_filename(video_id: str, title: str) -> str:
    return f"{artifact_stem(video_id, title)}.jpg"


def subtitle_filename(video_id: str, title: str, lang_code: str) -> str:
    safe_lang = _INVALID_FS_CHARS_RE.sub("", _SEPARATOR_RE.sub("_", str(lang_code or "").strip())) or "und"
    return f"{artifact_stem(video_id, title)}.{safe_lang}.xml"
