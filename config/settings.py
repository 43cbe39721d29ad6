"""Application settings constants."""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Remote work queue.
WORK_SOURCE_URL = os.environ.get("YTMA_WORK_SOURCE_URL", "https://youtube.the-eye.eu/api/admin/requests")
WORK_SOURCE_SECRET_HEADER = "X-Secret"
WORK_SOURCE_TIMEOUT_SECONDS = _env_float("YTMA_WORK_SOURCE_TIMEOUT", 10.0)

# Pipeline sizing. Unless YTMA_POLL_PAGE_SIZE is set, the poll page is twice the
# run's input queue so a single poll can keep the queue saturated.
DEFAULT_CONCURRENCY = _env_int("YTMA_CONCURRENCY", 4)
INPUT_QUEUE_SIZE = _env_int("YTMA_INPUT_QUEUE_SIZE", 512)
COMPLETION_QUEUE_SIZE = _env_int("YTMA_COMPLETION_QUEUE_SIZE", 32)
ACK_BATCH_SIZE = _env_int("YTMA_ACK_BATCH_SIZE", 32)
POLL_PAGE_SIZE = _env_int("YTMA_POLL_PAGE_SIZE", 0)
POLL_INTERVAL_SECONDS = _env_float("YTMA_POLL_INTERVAL", 5.0)
QUEUE_POLL_SECONDS = 0.5

# Per-item fetches.
REQUEST_TIMEOUT_SECONDS = _env_float("YTMA_REQUEST_TIMEOUT", 30.0)
USER_AGENT = os.environ.get(
    "YTMA_USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
)

WATCH_PAGE_URL = "https://www.youtube.com/watch?v={video_id}&gl=US&hl=en&has_verified=1&bpctr=9999999999"
WEBPAGE_URL = "https://www.youtube.com/watch?v={video_id}"
ANNOTATIONS_URL = "https://www.youtube.com/annotations_invideo?features=1&legacy=1&video_id={video_id}"
SUBTITLE_LIST_URL = "https://video.google.com/timedtext?hl=en&type=list&v={video_id}"
SUBTITLE_TRACK_URL = "https://www.youtube.com/api/timedtext?lang={lang}&v={video_id}"
DEFAULT_THUMBNAIL_URL = "https://i3.ytimg.com/vi/{video_id}/maxresdefault.jpg"
CHANNEL_URL_PREFIX = "https://www.youtube.com"

# Description, info JSON, annotations and thumbnail. Subtitles are extra.
MIN_ARCHIVED_FILES = 4
REQUIRED_ARTIFACT_SUFFIXES = (".description", ".info.json", ".annotations.xml", ".jpg")

# Filesystem roots.
OUTPUT_DIR = os.environ.get("YTMA_OUTPUT_DIR", "videos")
LOG_DIR = os.environ.get("YTMA_LOG_DIR", "logs")
