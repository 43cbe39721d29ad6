"""Single-video archive operation.

``VideoArchiver.archive`` is the whole fetch/parse/write sequence for one id.
It never raises: every failure is logged, the partially written directory is
removed and a failed :class:`ArchiveResult` is returned, which leaves the id
eligible for a later retry.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from config.settings import ANNOTATIONS_URL, MIN_ARCHIVED_FILES, WATCH_PAGE_URL
from download.fetcher import HttpFetcher
from download.subtitles import fetch_subtitles
from download.thumbnail import download_thumbnail
from engine.paths import is_already_archived, remove_partial_output, resolve_output_root, shard_path
from metadata.page_parser import parse_page
from metadata.types import ArchiveError, Video
from metadata.writer import write_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveResult:
    video_id: str
    success: bool
    skipped: bool = False
    path: str | None = None
    error: str | None = None
    elapsed: float = 0.0

    def __bool__(self) -> bool:
        return self.success


def fetch_annotations(video: Video, fetcher: HttpFetcher) -> None:
    video.annotations = fetcher.get_text(ANNOTATIONS_URL.format(video_id=video.video_id))


def fetch_page(video: Video, fetcher: HttpFetcher) -> str:
    return fetcher.get_text(WATCH_PAGE_URL.format(video_id=video.video_id))


class VideoArchiver:
    """Archives video ids under ``output_root`` using a shared :class:`HttpFetcher`."""

    def __init__(self, output_root=None, fetcher: HttpFetcher | None = None, *, min_files: int = MIN_ARCHIVED_FILES):
        self.output_root = resolve_output_root(output_root)
        self.fetcher = fetcher or HttpFetcher()
        self.min_files = min_files

    def __call__(self, video_id: str) -> bool:
        return self.archive(video_id).success

    def archive(self, video_id: str) -> ArchiveResult:
        start = time.monotonic()
        try:
            path = shard_path(self.output_root, video_id)
        except ValueError as exc:
            logger.warning("[%s] rejected: %s", video_id, exc)
            return ArchiveResult(video_id, False, error=str(exc))

        if is_already_archived(path, min_files=self.min_files):
            logger.info("[%s] already archived path=%s", video_id, path)
            return ArchiveResult(video_id, True, skipped=True, path=str(path))

        logger.info("[%s] archiving started", video_id)
        try:
            self._run_stages(Video(video_id=video_id, path=path))
        except (ArchiveError, OSError) as exc:
            return self._fail(video_id, path, start, exc)
        except Exception as exc:
            logger.exception("[%s] unexpected archive failure", video_id)
            return self._fail(video_id, path, start, exc)

        elapsed = time.monotonic() - start
        logger.info("[%s] archiving completed in %.2fs", video_id, elapsed)
        return ArchiveResult(video_id, True, path=str(path), elapsed=elapsed)

    def _fail(self, video_id: str, path: Path, start: float, exc: Exception) -> ArchiveResult:
        logger.warning("[%s] archiving failed: %s", video_id, exc)
        if not remove_partial_output(path):
            logger.error("[%s] failed to remove partial output path=%s", video_id, path)
        return ArchiveResult(video_id, False, path=str(path), error=str(exc), elapsed=time.monotonic() - start)

    def _run_stages(self, video: Video) -> None:
        video.path.mkdir(parents=True, exist_ok=True)

        logger.debug("[%s] fetching page and annotations", video.video_id)
        with ThreadPoolExecutor(max_workers=2) as pool:
            page_future = pool.submit(fetch_page, video, self.fetcher)
            annotations_future = pool.submit(fetch_annotations, video, self.fetcher)
            # Both must finish before either error is raised.
            page_error = page_future.exception()
            annotations_error = annotations_future.exception()
        if page_error is not None:
            raise page_error
        if annotations_error is not None:
            raise annotations_error

        logger.debug("[%s] parsing page", video.video_id)
        parse_page(video, page_future.result())

        logger.debug("[%s] fetching subtitles", video.video_id)
        languages = fetch_subtitles(video, self.fetcher)
        if languages:
            logger.debug("[%s] subtitles written langs=%s", video.video_id, ",".join(languages))

        logger.debug("[%s] writing metadata files", video.video_id)
        write_files(video)

        logger.debug("[%s] downloading thumbnail", video.video_id)
        download_thumbnail(video, self.fetcher)
