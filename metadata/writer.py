"""Serialization of a parsed video to its output directory."""

from __future__ import annotations

import json
from pathlib import Path

from metadata.naming import annotations_filename, description_filename, info_filename
from metadata.types import Video


def render_info_json(video: Video) -> str:
    return json.dumps(video.info.to_dict(), indent=2, ensure_ascii=False) + "\n"


def write_files(video: Video) -> list[Path]:
    """Write the description, info JSON and annotations files.

    Returns the written paths in that order.
    """
    targets = [
        (video.path / description_filename(video.video_id, video.title), video.description),
        (video.path / info_filename(video.video_id, video.title), render_info_json(video)),
        (video.path / annotations_filename(video.video_id, video.title), video.annotations),
    ]
    for path, content in targets:
        path.write_text(content, encoding="utf-8")
    return [path for path, _ in targets]
