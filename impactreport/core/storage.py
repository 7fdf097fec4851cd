"""Section content persistence: backend contract and the JSON file store."""

from __future__ import annotations

import json
import logging
import mimetypes
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULTS_DOCUMENT = "defaults"
ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
EXTENSIONS_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

ProgressCallback = Callable[[int], None]


class UploadError(Exception):
    """Raised when a selected file cannot be uploaded."""


@dataclass(frozen=True)
class UploadTarget:
    upload_url: str
    public_url: str
    key: str


class ContentBackend(Protocol):
    def fetch_section(self, section_id: str) -> Optional[Dict[str, Any]]:
        ...

    def save_section(self, section_id: str, payload: Dict[str, Any]) -> bool:
        ...

    def request_upload_target(self, meta: Dict[str, str]) -> UploadTarget:
        ...

    def put_file(
        self,
        target: UploadTarget,
        path: str | Path,
        content_type: str,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        ...


def guess_content_type(path: str | Path) -> str:
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or ""


def check_image(path: str | Path, content_type: str = "") -> str:
    """Return the content type of an uploadable image or raise UploadError."""
    content_type = content_type or guess_content_type(path)
    if content_type in ALLOWED_IMAGE_TYPES:
        return content_type
    name = str(path).lower()
    if re.search(r"heic|heif", content_type, re.I) or name.endswith((".heic", ".heif")):
        raise UploadError(
            "HEIC images are not widely supported in browsers. "
            "Please upload a JPG or PNG instead.")
    raise UploadError(
        "Unsupported image format. Please upload a JPG, PNG, or WebP image.")


def upload_key(section_id: str, field_key: str, content_type: str) -> str:
    ext = EXTENSIONS_BY_TYPE.get(content_type, "bin")
    return re.sub(r"[^a-zA-Z0-9/_.-]", "", f"{section_id}/{field_key}.{ext}")


class JsonContentStore:
    """Stores one JSON document per section inside ``root``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.media_dir = self.root / "media"

    def _path(self, section_id: str) -> Path:
        safe = re.sub(r"[^a-zA-Z0-9_-]", "", section_id) or "section"
        return self.root / f"{safe}.json"

    def fetch_section(self, section_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(section_id)
        if not path.exists():
            logger.info("[%s] no stored document at %s", section_id, path)
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("[%s] unreadable document %s: %s", section_id, path, exc)
            return None
        if not isinstance(data, dict):
            return None
        return data

    def save_section(self, section_id: str, payload: Dict[str, Any]) -> bool:
        path = self._path(section_id)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".json.tmp")
            tmp.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False),
                encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            logger.error("[%s] save failed: %s", section_id, exc)
            return False
        logger.info("[%s] saved %d fields", section_id, len(payload))
        return True

    def request_upload_target(self, meta: Dict[str, str]) -> UploadTarget:
        key = meta.get("key") or upload_key(
            meta.get("section", "media"), meta.get("field", "file"),
            meta.get("contentType", ""))
        dest = self.media_dir / key
        return UploadTarget(
            upload_url=str(dest),
            public_url=dest.resolve().as_uri(),
            key=key,
        )

    def put_file(
        self,
        target: UploadTarget,
        path: str | Path,
        content_type: str,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        dest = Path(target.upload_url)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, dest)
        except OSError as exc:
            raise UploadError(f"Upload failed: {exc}") from exc
        if progress is not None:
            progress(100)
