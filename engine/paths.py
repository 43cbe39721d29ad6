import os
import shutil
from pathlib import Path

from config.settings import MIN_ARCHIVED_FILES, OUTPUT_DIR, REQUIRED_ARTIFACT_SUFFIXES


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)


def resolve_output_root(path=None):
    return Path(path or os.environ.get("YTMA_OUTPUT_DIR") or OUTPUT_DIR).expanduser().resolve()


def _validate_video_id(video_id):
    if not isinstance(video_id, str) or not video_id:
        raise ValueError("video id must be a non-empty string")
    if video_id.startswith(".") or "/" in video_id or "\\" in video_id or "\x00" in video_id:
        # Ids are used verbatim as directory names.
        raise ValueError(f"video id is not a safe path component: {video_id!r}")
    return video_id


def shard_path(output_root, video_id):
    """Return ``<root>/<id[0]>/<id[:2]>/<id>`` for a video id.

    The mapping is pure: it never touches the filesystem.
    """
    video_id = _validate_video_id(video_id)
    return Path(output_root) / video_id[:1] / video_id[:2] / video_id


def _artifact_names(path):
    try:
        return [entry.name for entry in os.scandir(path) if entry.is_file()]
    except (FileNotFoundError, NotADirectoryError):
        return []


def count_artifacts(path):
    return len(_artifact_names(path))


def is_already_archived(path, *, min_files=MIN_ARCHIVED_FILES, required_suffixes=REQUIRED_ARTIFACT_SUFFIXES):
    """True when ``path`` holds at least ``min_files`` files, one per required suffix among them.

    Subtitle tracks alone never satisfy the check, so a run killed while
    writing them is retried.
    """
    names = _artifact_names(path)
    if len(names) < min_files:
        return False
    return all(any(name.endswith(suffix) for name in names) for suffix in required_suffixes)


def remove_partial_output(path):
    """Delete an item directory and everything under it; missing paths are ignored."""
    shutil.rmtree(path, ignore_errors=True)
    return not os.path.exists(path)
