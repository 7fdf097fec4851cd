from __future__ import annotations

import json

import pytest

from impactreport.core.storage import (
    JsonContentStore,
    UploadError,
    check_image,
    upload_key,
)


def test_missing_document_is_none(tmp_path) -> None:
    assert JsonContentStore(tmp_path).fetch_section("hero") is None


def test_save_then_fetch(tmp_path) -> None:
    store = JsonContentStore(tmp_path / "content")
    assert store.save_section("hero", {"title": "Hi", "backgroundColor": "linear-gradient(90deg, #000, #fff)"})
    assert store.fetch_section("hero")["backgroundColor"] == "linear-gradient(90deg, #000, #fff)"
    assert not list((tmp_path / "content").glob("*.tmp"))


def test_unreadable_document_is_none(tmp_path) -> None:
    (tmp_path / "mission.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "impact.json").write_text(json.dumps([1, 2]), encoding="utf-8")
    store = JsonContentStore(tmp_path)
    assert store.fetch_section("mission") is None
    assert store.fetch_section("impact") is None


def test_section_id_cannot_escape_root(tmp_path) -> None:
    store = JsonContentStore(tmp_path / "root")
    store.save_section("../evil", {"x": 1})
    assert (tmp_path / "root" / "evil.json").exists()


def test_upload_copies_into_media(tmp_path, png_file) -> None:
    store = JsonContentStore(tmp_path / "content")
    target = store.request_upload_target({
        "contentType": "image/png", "key": "hero/backgroundImage.png",
    })
    progress = []
    store.put_file(target, png_file, "image/png", progress.append)
    copied = tmp_path / "content" / "media" / "hero" / "backgroundImage.png"
    assert copied.read_bytes() == png_file.read_bytes()
    assert target.public_url.startswith("file://")
    assert progress == [100]


def test_put_file_missing_source_raises(tmp_path) -> None:
    store = JsonContentStore(tmp_path)
    target = store.request_upload_target({"key": "a/b.png"})
    with pytest.raises(UploadError):
        store.put_file(target, tmp_path / "missing.png", "image/png")


def test_check_image_types(tmp_path) -> None:
    assert check_image("photo.jpeg") == "image/jpeg"
    assert check_image("x", "image/webp") == "image/webp"
    with pytest.raises(UploadError, match="HEIC"):
        check_image("IMG.heic")
    with pytest.raises(UploadError, match="Unsupported"):
        check_image("notes.txt")


def test_upload_key() -> None:
    assert upload_key("hero", "backgroundImage", "image/jpeg") == "hero/backgroundImage.jpg"
    assert upload_key("a b", "c?", "application/x") == "ab/c.bin"
