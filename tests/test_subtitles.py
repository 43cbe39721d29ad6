from __future__ import annotations

import logging
from pathlib import Path

import pytest

from download.fetcher import FetchError
from download.subtitles import parse_track_list, subtitle_entries, track_url
from download.thumbnail import download_thumbnail
from metadata.types import Video


def test_track_url_escapes_language_code() -> None:
    assert track_url("abc123", "en") == "https://www.youtube.com/api/timedtext?lang=en&v=abc123"
    assert track_url("abc123", "pt BR&v=x") == "https://www.youtube.com/api/timedtext?lang=pt%20BR%26v%3Dx&v=abc123"


def test_subtitle_entries_use_escaped_base_url() -> None:
    entries = subtitle_entries("abc123", "zh/Hans")

    assert [entry.ext for entry in entries] == ["xml", "ttml", "vtt"]
    assert all(entry.url.startswith("https://www.youtube.com/api/timedtext?lang=zh%2FHans&v=abc123") for entry in entries)
    assert entries[1].url.endswith("&fmt=ttml&name=")


def test_parse_track_list_skips_tracks_without_language() -> None:
    payload = (
        "<transcript_list>"
        '<track id="0" lang_code="en" lang_translated="English"/>'
        '<track id="1" lang_code="" lang_translated="Blank"/>'
        '<track id="2" lang_code="de"/>'
        "</transcript_list>"
    )

    tracks = parse_track_list(payload)

    assert [(track.lang_code, track.lang) for track in tracks] == [("en", "English"), ("de", "de")]
    assert parse_track_list("   ") == []


def test_parse_track_list_rejects_invalid_xml() -> None:
    with pytest.raises(FetchError):
        parse_track_list("<transcript_list><track")


class _MockFetcher:
    def __init__(self, payload):
        self.payload = payload

    def get_bytes(self, url):
        return self.payload


def test_thumbnail_logs_through_module_logger(tmp_path: Path, jpeg_bytes, caplog) -> None:
    video = Video(video_id="abc123", path=tmp_path, title="Title", thumbnail="https://i.ytimg.com/x.jpg")

    with caplog.at_level(logging.DEBUG, logger="download.thumbnail"):
        target = download_thumbnail(video, _MockFetcher(jpeg_bytes))

    assert target.read_bytes() == jpeg_bytes
    assert any(record.name == "download.thumbnail" and "thumbnail written" in record.getMessage() for record in caplog.records)
