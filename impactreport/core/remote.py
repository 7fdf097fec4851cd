"""HTTP backend talking to the impact report API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import requests

from .models import url_slug
from .storage import ProgressCallback, UploadError, UploadTarget

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:4000"
DEFAULT_REPORT_SLUG = "impact-report"
CHUNK_SIZE = 64 * 1024


class _FileChunks:
    """Iterable file body with a known length, reporting progress per chunk.

    ``requests`` sends a body with ``__len__`` as a plain Content-Length
    upload instead of chunked transfer encoding.
    """

    def __init__(self, path: Path, progress: Optional[ProgressCallback] = None) -> None:
        self.path = path
        self.total = path.stat().st_size
        self.progress = progress

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[bytes]:
        sent = 0
        with self.path.open("rb") as fh:
            while True:
                chunk = fh.read(CHUNK_SIZE)
                if not chunk:
                    break
                sent += len(chunk)
                if self.progress is not None and self.total:
                    self.progress(round(sent * 100 / self.total))
                yield chunk


class HttpContentBackend:
    """``GET``/``PUT`` section documents under ``/api/impact/<section-slug>``.

    Every document request carries ``?slug=<report>`` so one server can hold
    several reports. Responses wrap the document in ``{"data": ...}``. Fetch
    failures of any kind return ``None`` and save failures return ``False``;
    the caller only sees "no content" or "not saved".
    """

    def __init__(self, base_url: str = DEFAULT_BACKEND_URL, timeout: float = 15.0,
                 token: Optional[str] = None, slug: str = DEFAULT_REPORT_SLUG) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.slug = slug or DEFAULT_REPORT_SLUG
        self.http = requests.Session()
        self.http.headers["Accept"] = "application/json"
        if token:
            self.http.headers["Authorization"] = f"Bearer {token}"

    def section_url(self, section_id: str) -> str:
        return f"{self.base_url}/api/impact/{url_slug(section_id)}"

    def _data(self, response: requests.Response) -> Any:
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def fetch_section(self, section_id: str) -> Optional[Dict[str, Any]]:
        url = self.section_url(section_id)
        logger.info("[%s] GET %s slug=%s", section_id, url, self.slug)
        try:
            response = self.http.get(url, params={"slug": self.slug}, timeout=self.timeout)
            payload = self._data(response)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("[%s] GET failed: %s", section_id, exc)
            return None
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None
        logger.info("[%s] GET success, fields=%s", section_id, sorted(data))
        return data

    def save_section(self, section_id: str, payload: Dict[str, Any]) -> bool:
        url = self.section_url(section_id)
        logger.info("[%s] PUT %s keys=%s", section_id, url, sorted(payload))
        try:
            response = self.http.put(
                url, params={"slug": self.slug}, json=payload, timeout=self.timeout)
            self._data(response)
        except (requests.RequestException, ValueError) as exc:
            logger.error("[%s] PUT failed: %s", section_id, exc)
            return False
        return True

    def request_upload_target(self, meta: Dict[str, str]) -> UploadTarget:
        url = f"{self.base_url}/api/uploads/sign"
        try:
            response = self.http.post(url, json=meta, timeout=self.timeout)
            signed = self._data(response)
        except (requests.RequestException, ValueError) as exc:
            raise UploadError(f"Failed to sign upload: {exc}") from exc
        try:
            return UploadTarget(
                upload_url=str(signed["uploadUrl"]),
                public_url=str(signed["publicUrl"]),
                key=str(signed["key"]),
            )
        except (KeyError, TypeError) as exc:
            raise UploadError("Malformed upload signature") from exc

    def put_file(
        self,
        target: UploadTarget,
        path: str | Path,
        content_type: str,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        body = _FileChunks(Path(path), progress)
        headers = {"Content-Type": content_type} if content_type else {}
        # signed URLs carry their own credentials, so no session headers here
        try:
            response = requests.put(
                target.upload_url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UploadError("Network error during upload") from exc
        if not response.ok:
            raise UploadError(f"Upload failed: {response.status_code}")
        if progress is not None and not body.total:
            progress(100)

    def close(self) -> None:
        self.http.close()
