"""Subtitle track discovery and download."""

from __future__ import annotations

import logging
import urllib.parse
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass

from config.settings import SUBTITLE_LIST_URL, SUBTITLE_TRACK_URL
from download.fetcher import FetchError, HttpFetcher
from metadata.naming import subtitle_filename
from metadata.types import Subtitle, Video

logger = logging.getLogger(__name__)

MAX_PARALLEL_TRACKS = 8


@dataclass(frozen=True)
class Track:
    lang_code: str
    lang: str


def parse_track_list(payload: str) -> list[Track]:
    """Parse the ``<transcript_list>`` document; an empty body means no tracks."""
    if not payload or not payload.strip():
        return []
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise FetchError(f"subtitle track list is not valid XML: {exc}") from exc
    tracks = []
    for node in root.iter("track"):
        lang_code = (node.get("lang_code") or "").strip()
        if not lang_code:
            continue
        tracks.append(Track(lang_code=lang_code, lang=node.get("lang_translated") or lang_code))
    return tracks


def track_url(video_id: str, lang_code: str) -> str:
    return SUBTITLE_TRACK_URL.format(lang=urllib.parse.quote(lang_code, safe=""), video_id=video_id)


def subtitle_entries(video_id: str, lang_code: str) -> list[Subtitle]:
    base = track_url(video_id, lang_code)
    return [
        Subtitle(base, "xml"),
        Subtitle(base + "&fmt=ttml&name=", "ttml"),
        Subtitle(base + "&fmt=vtt&name=", "vtt"),
    ]


def download_track(video: Video, track: Track, fetcher: HttpFetcher) -> str:
    video.info.add_subtitles(track.lang_code, subtitle_entries(video.video_id, track.lang_code))
    logger.debug("[%s] downloading %s subtitle [%s]", video.video_id, track.lang, track.lang_code)
    payload = fetcher.get_bytes(track_url(video.video_id, track.lang_code))
    target = video.path / subtitle_filename(video.video_id, video.title, track.lang_code)
    target.write_bytes(payload)
    return track.lang_code


def fetch_subtitles(video: Video, fetcher: HttpFetcher) -> list[str]:
    """Fetch the track list, then every track concurrently.

    Returns the language codes written. Any track failure fails the call
    after all in-flight tracks have finished.
    """
    tracks = parse_track_list(fetcher.get_text(SUBTITLE_LIST_URL.format(video_id=video.video_id)))
    if not tracks:
        return []
    written: list[str] = []
    errors: list[Exception] = []
    with ThreadPoolExecutor(max_workers=min(MAX_PARALLEL_TRACKS, len(tracks))) as pool:
        futures = [pool.submit(download_track, video, track, fetcher) for track in tracks]
        for future in as_completed(futures):
            try:
                written.append(future.result())
            except Exception as exc:
                errors.append(exc)
    if errors:
        raise errors[0]
    return sorted(written)
