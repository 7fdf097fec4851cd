from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.append(str(Path(__file__).resolve().parents[1]))

from impactreport.core.storage import UploadError, UploadTarget  # noqa: E402
from impactreport.core.store import EditorStore  # noqa: E402


class FakeBackend:
    """In-memory backend recording every call."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.documents: Dict[str, Dict[str, Any]] = dict(documents or {})
        self.fail_fetch: set = set()
        self.raise_fetch: set = set()
        self.fail_save: set = set()
        self.fail_upload = False
        self.calls: List[tuple] = []
        self.uploaded: List[str] = []

    def fetch_section(self, section_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append(("fetch", section_id))
        if section_id in self.raise_fetch:
            raise ConnectionError("unreachable")
        if section_id in self.fail_fetch:
            return None
        doc = self.documents.get(section_id)
        return dict(doc) if doc is not None else None

    def save_section(self, section_id: str, payload: Dict[str, Any]) -> bool:
        self.calls.append(("save", section_id))
        if section_id in self.fail_save:
            return False
        self.documents[section_id] = dict(payload)
        return True

    def request_upload_target(self, meta: Dict[str, str]) -> UploadTarget:
        self.calls.append(("sign", meta["key"]))
        if self.fail_upload:
            raise UploadError("Failed to sign upload")
        return UploadTarget(
            upload_url=f"memory://{meta['key']}",
            public_url=f"https://cdn.example.org/{meta['key']}",
            key=meta["key"],
        )

    def put_file(self, target, path, content_type, progress=None) -> None:
        self.calls.append(("put", target.key))
        self.uploaded.append(str(path))
        if progress is not None:
            progress(100)

    def saves(self) -> List[str]:
        return [name for kind, name in self.calls if kind == "save"]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> EditorStore:
    return EditorStore()


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32)
    return path
