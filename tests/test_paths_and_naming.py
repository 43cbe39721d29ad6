from __future__ import annotations

from pathlib import Path

import pytest

from engine.paths import count_artifacts, is_already_archived, remove_partial_output, shard_path
from metadata.naming import sanitize_title, subtitle_filename, thumbnail_filename


def test_shard_path_uses_two_prefix_levels() -> None:
    assert shard_path(Path("/archive"), "abc123") == Path("/archive/a/ab/abc123")
    assert shard_path(Path("/archive"), "x") == Path("/archive/x/x/x")


@pytest.mark.parametrize("bad_id", ["", "../etc", "a/b", ".hidden", None])
def test_shard_path_rejects_unsafe_ids(bad_id) -> None:
    with pytest.raises(ValueError):
        shard_path(Path("/archive"), bad_id)


def test_already_archived_requires_minimum_file_count(tmp_path: Path) -> None:
    target = tmp_path / "a" / "ab" / "abc123"
    assert is_already_archived(target) is False

    target.mkdir(parents=True)
    for suffix in ("description", "info.json", "annotations.xml"):
        (target / f"abc123_t.{suffix}").write_text("x")
    (target / "nested").mkdir()
    assert count_artifacts(target) == 3
    assert is_already_archived(target) is False

    (target / "abc123_t.jpg").write_text("x")
    assert is_already_archived(target) is True


def test_subtitle_files_alone_do_not_count_as_archived(tmp_path: Path) -> None:
    target = tmp_path / "a" / "ab" / "abc123"
    target.mkdir(parents=True)
    for lang in ("en", "fr", "de", "es", "it"):
        (target / f"abc123_t.{lang}.xml").write_text("x")
    (target / "abc123_t.description").write_text("x")

    assert count_artifacts(target) == 6
    assert is_already_archived(target) is False

    for suffix in ("info.json", "annotations.xml", "jpg"):
        (target / f"abc123_t.{suffix}").write_text("x")
    assert is_already_archived(target) is True


def test_remove_partial_output_is_idempotent(tmp_path: Path) -> None:
    target = tmp_path / "d" / "de" / "deadid"
    target.mkdir(parents=True)
    (target / "partial.description").write_text("x")

    assert remove_partial_output(target) is True
    assert not target.exists()
    assert remove_partial_output(target) is True


def test_sanitize_title_replaces_separators() -> None:
    assert sanitize_title("My Video / Part 2") == "My_Video_Part_2"
    assert sanitize_title('What? "Quotes" <here>') == "What_Quotes_here"
    assert sanitize_title("   ") == "untitled"


def test_artifact_filenames() -> None:
    assert thumbnail_filename("abc123", "Title") == "abc123_Title.jpg"
    assert subtitle_filename("abc123", "Title", "pt-BR") == "abc123_Title.pt-BR.xml"
