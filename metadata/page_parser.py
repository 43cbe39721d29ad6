"""Watch page parsing.

Each ``extract_*`` step reads the parsed document (and, for a few fields, the
raw HTML or the decoded player config) and writes its own fields on the
:class:`~metadata.types.Video`. Steps inside a phase share no fields, so a
phase runs them concurrently and joins before the next phase starts.

Steps raise :class:`ParseError` when a required field is missing; any such
error fails the whole video.
"""

from __future__ import annotations

import json
import logging
import re
import urllib.parse
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from bs4 import BeautifulSoup, NavigableString, Tag
from yt_dlp.utils import float_or_none, str_to_int

from config.settings import CHANNEL_URL_PREFIX, DEFAULT_THUMBNAIL_URL, WEBPAGE_URL
from metadata.formats import parse_adaptive_formats
from metadata.naming import sanitize_title
from metadata.types import ArchiveError, Video

logger = logging.getLogger(__name__)

_PLAYER_CONFIG_PREFIX = "var ytplayer = ytplayer || {};ytplayer.config = "
_PLAYER_CONFIG_SUFFIX = ";ytplayer.load "
_UPLOADER_LINK_CLASSES = {"yt-uix-sessionlink", "spf-link"}
_VIDEO_URL_MARKERS = ("https://www.youtube.com/watch?v=", "https://youtu.be")
_NON_DIGITS_RE = re.compile(r"[^0-9]+")
_CATEGORY_RE = re.compile(r"<h4[^>]*>\s*Category\s*</h4>\s*<ul[^>]*>(.*?)</ul>", re.DOTALL)
_NOTICE_RE = re.compile(r"<h4[^>]*>\s*Notice\s*</h4>\s*<ul[^>]*>(.*?)</ul>", re.DOTALL)
_LICENSE_RE = re.compile(r'<h4[^>]+class="title"[^>]*>\s*License\s*</h4>\s*<ul[^>]*>\s*<li>(.+?)</li')
_AGE_RESTRICTED_NOTICE = "Age-restricted video (based on Community Guidelines)"
_AGE_RESTRICTED_LIMIT = 18

Step = Callable[[Video, BeautifulSoup], None]


class ParseError(ArchiveError):
    """Raised when a required field cannot be extracted from the watch page."""


def _fragment_links_text(fragment: str) -> str:
    return "".join(link.get_text() for link in BeautifulSoup(fragment, "html.parser").find_all("a"))


def _single_match(pattern: re.Pattern[str], raw_html: str) -> str | None:
    matches = pattern.findall(raw_html)
    if len(matches) == 1:
        return matches[0]
    return None


# ---------------------------------------------------------------------------
# Phase one: fields read straight from the document
# ---------------------------------------------------------------------------
def extract_title(video: Video, document: BeautifulSoup) -> None:
    node = document.select_one("#eow-title")
    title = node.get_text().strip() if node else ""
    if not title:
        raise ParseError("title of the video is empty")
    video.info.title = title
    video.title = sanitize_title(title)


def extract_description(video: Video, document: BeautifulSoup) -> None:
    node = document.select_one("#eow-description")
    parts: list[str] = []
    for child in node.children if node else ():
        if type(child) is NavigableString:
            parts.append(str(child))
        elif isinstance(child, Tag) and child.name == "a":
            parts.append(child.get_text())
        elif isinstance(child, Tag) and child.name == "br":
            parts.append("\n")
        else:
            name = child.name if isinstance(child, Tag) else type(child).__name__
            raise ParseError(f"unknown node in description: {name}")
    video.description = "".join(parts)


def extract_thumbnail(video: Video, document: BeautifulSoup) -> None:
    thumbnail = ""
    for meta in document.find_all("meta", attrs={"property": "og:image"}):
        thumbnail = str(meta.get("content") or "").strip() or thumbnail
    video.thumbnail = thumbnail or DEFAULT_THUMBNAIL_URL.format(video_id=video.video_id)


def extract_player_args(video: Video, document: BeautifulSoup) -> None:
    args = None
    for script in document.select("div#player script"):
        js = str(script.string or script.get_text())
        if not js.startswith(_PLAYER_CONFIG_PREFIX):
            continue
        end = js.find(_PLAYER_CONFIG_SUFFIX)
        if end == -1:
            args = None
            continue
        try:
            config = json.loads(js[len(_PLAYER_CONFIG_PREFIX) : end])
        except ValueError:
            args = None
            continue
        args = config.get("args") if isinstance(config, dict) else None
    if not isinstance(args, dict):
        raise ParseError("error when parsing player arguments")
    video.player_args = args


# ---------------------------------------------------------------------------
# Phase two: info record fields
# ---------------------------------------------------------------------------
def extract_uploader(video: Video, document: BeautifulSoup) -> None:
    info = video.info
    for link in document.find_all("a"):
        if set(link.get("class") or ()) != _UPLOADER_LINK_CLASSES:
            continue
        name = link.get_text().strip()
        if name and not any(marker in name for marker in _VIDEO_URL_MARKERS):
            info.uploader = name
        href = str(link.get("href") or "")
        if "/channel/" in href:
            info.uploader_id = href.split("/channel/", 1)[1].strip("/")
            info.uploader_url = urllib.parse.urljoin(CHANNEL_URL_PREFIX, href)
    if not (info.uploader and info.uploader_id and info.uploader_url):
        raise ParseError("error when parsing uploader information")


def _last_count(buttons) -> int | None:
    count = None
    for button in buttons:
        text = button.get_text().strip()
        if text:
            count = str_to_int(text)
    return count


def extract_like_dislike(video: Video, document: BeautifulSoup) -> None:
    likes = _last_count(document.select("button.like-button-renderer-like-button"))
    dislikes = _last_count(document.select("button.like-button-renderer-dislike-button"))
    if likes is None or dislikes is None:
        raise ParseError("error when parsing like/dislike counters")
    video.info.like_count = likes
    video.info.dislike_count = dislikes


def extract_upload_date(video: Video, document: BeautifulSoup) -> None:
    date = ""
    for meta in document.find_all("meta", attrs={"itemprop": "datePublished"}):
        date = str(meta.get("content") or "").replace("-", "").strip()
    if not date:
        raise ParseError("error when parsing publication date")
    video.info.upload_date = date


def extract_view_count(video: Video, document: BeautifulSoup) -> None:
    views = None
    for node in document.find_all("div", class_="watch-view-count"):
        digits = _NON_DIGITS_RE.sub("", node.get_text())
        if digits:
            views = int(digits)
    if views is None:
        raise ParseError("error when parsing view count")
    video.info.view_count = views


def extract_license(video: Video, document: BeautifulSoup) -> None:
    fragment = _single_match(_LICENSE_RE, video.raw_html)
    if fragment is not None:
        video.info.license = _fragment_links_text(fragment)


def extract_average_rating(video: Video, document: BeautifulSoup) -> None:
    rating = float_or_none((video.player_args or {}).get("avg_rating"))
    if rating is None:
        raise ParseError("error when parsing average rating")
    video.info.average_rating = rating


def extract_formats(video: Video, document: BeautifulSoup) -> None:
    video.info.formats = parse_adaptive_formats(video.player_args)


def extract_tags(video: Video, document: BeautifulSoup) -> None:
    video.info.tags = [
        str(meta.get("content") or "")
        for meta in document.find_all("meta", attrs={"property": "og:video:tag"})
    ]


def extract_category(video: Video, document: BeautifulSoup) -> None:
    fragment = _single_match(_CATEGORY_RE, video.raw_html)
    category = _fragment_links_text(fragment).strip() if fragment is not None else ""
    if not category:
        raise ParseError("error when parsing category")
    video.info.category = category


def extract_age_limit(video: Video, document: BeautifulSoup) -> None:
    fragment = _single_match(_NOTICE_RE, video.raw_html)
    if fragment is not None and _AGE_RESTRICTED_NOTICE in _fragment_links_text(fragment):
        video.info.age_limit = _AGE_RESTRICTED_LIMIT
    else:
        video.info.age_limit = 0


def extract_duration(video: Video, document: BeautifulSoup) -> None:
    duration = float_or_none((video.player_args or {}).get("length_seconds"))
    if duration is None:
        raise ParseError("error when parsing video duration")
    video.info.duration = duration


PAGE_STEPS: tuple[Step, ...] = (
    extract_title,
    extract_description,
    extract_thumbnail,
    extract_player_args,
)

INFO_STEPS: tuple[Step, ...] = (
    extract_uploader,
    extract_like_dislike,
    extract_upload_date,
    extract_license,
    extract_view_count,
    extract_average_rating,
    extract_formats,
    extract_tags,
    extract_category,
    extract_age_limit,
    extract_duration,
)


def run_steps(video: Video, document: BeautifulSoup, steps: tuple[Step, ...]) -> None:
    """Run ``steps`` concurrently and return once all of them have finished.

    The first failure (in completion order) is raised after the join.
    """
    errors: list[ParseError] = []
    with ThreadPoolExecutor(max_workers=len(steps)) as pool:
        futures = {pool.submit(step, video, document): step for step in steps}
        for future in as_completed(futures):
            step = futures[future]
            try:
                future.result()
            except ParseError as exc:
                errors.append(exc)
            except Exception as exc:
                errors.append(ParseError(f"{step.__name__} failed: {exc}"))
    if errors:
        raise errors[0]


def parse_page(video: Video, raw_html: str) -> None:
    """Populate ``video`` from the watch page HTML."""
    video.raw_html = raw_html
    document = BeautifulSoup(raw_html, "html.parser")
    run_steps(video, document, PAGE_STEPS)

    info = video.info
    info.id = video.video_id
    info.description = video.description
    info.annotations = video.annotations
    info.thumbnail = video.thumbnail
    info.webpage_url = WEBPAGE_URL.format(video_id=video.video_id)
    run_steps(video, document, INFO_STEPS)
    logger.debug("[%s] parsed page title=%r formats=%d", video.video_id, info.title, len(info.formats))
