"""Structured metadata types for archived videos."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class ArchiveError(Exception):
    """Base class for failures that abort archiving of a single video."""


@dataclass(frozen=True)
class Subtitle:
    url: str
    ext: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "ext": self.ext}


@dataclass
class Format:
    """One adaptive stream variant advertised by the player config."""

    format_id: str = ""
    ext: str = ""
    url: str = ""
    height: float = 0
    width: float = 0
    format_note: str = ""
    bitrate: float = 0
    fps: float = 0
    format: str = ""
    clen: float = 0
    eotf: str = ""
    index: str = ""
    init: str = ""
    lmt: float = 0
    primaries: str = ""
    quality_label: str = ""
    type: str = ""
    size: str = ""

    # Serialized even when empty; every other field is dropped when falsy.
    _ALWAYS = ("format_id", "ext", "url", "format_note", "bitrate", "format", "type")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if name in self._ALWAYS or value:
                payload[name] = value
        return payload


@dataclass
class InfoRecord:
    """The ``info.json`` record.

    Extraction steps run concurrently and each owns a disjoint set of fields.
    ``subtitles`` is the exception: every subtitle download appends to it, so
    all writes go through :meth:`add_subtitles`.
    """

    id: str = ""
    uploader: str = ""
    uploader_id: str = ""
    uploader_url: str = ""
    upload_date: str = ""
    license: str = ""
    title: str = ""
    thumbnail: str = ""
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    subtitles: dict[str, list[Subtitle]] = field(default_factory=dict)
    duration: float = 0
    age_limit: int = 0
    annotations: str = ""
    webpage_url: str = ""
    view_count: int = 0
    like_count: int = 0
    dislike_count: int = 0
    average_rating: float = 0
    formats: list[Format] = field(default_factory=list)
    _subtitle_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add_subtitles(self, lang_code: str, entries: list[Subtitle]) -> None:
        with self._subtitle_lock:
            self.subtitles.setdefault(lang_code, []).extend(entries)

    def to_dict(self) -> dict[str, Any]:
        with self._subtitle_lock:
            subtitles = {lang: [entry.to_dict() for entry in entries] for lang, entries in self.subtitles.items()}
        payload: dict[str, Any] = {
            "id": self.id,
            "uploader": self.uploader,
            "uploader_id": self.uploader_id,
            "uploader_url": self.uploader_url,
            "upload_date": self.upload_date,
        }
        if self.license:
            payload["license"] = self.license
        payload.update(
            {
                "title": self.title,
                "thumbnail": self.thumbnail,
                "description": self.description,
                "category": self.category,
                "tags": list(self.tags),
                "subtitles": subtitles,
                "duration": self.duration,
                "age_limit": self.age_limit,
                "annotations": self.annotations,
                "webpage_url": self.webpage_url,
                "view_count": self.view_count,
                "like_count": self.like_count,
                "dislike_count": self.dislike_count,
                "average_rating": self.average_rating,
                "formats": [fmt.to_dict() for fmt in self.formats],
            }
        )
        return payload


@dataclass
class Video:
    """Work item for one video id, owned by a single archive run."""

    video_id: str
    path: Path
    title: str = ""
    description: str = ""
    annotations: str = ""
    thumbnail: str = ""
    raw_html: str = ""
    player_args: dict[str, Any] | None = None
    info: InfoRecord = field(default_factory=InfoRecord)

    def __post_init__(self) -> None:
        self.info.id = self.video_id
