from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List
from urllib.parse import parse_qs, urlsplit

import pytest

from impactreport.core.models import url_slug
from impactreport.core.remote import HttpContentBackend
from impactreport.core.storage import UploadError, UploadTarget


class _Handler(BaseHTTPRequestHandler):
    documents: Dict[str, Any] = {}
    uploads: Dict[str, bytes] = {}
    requests: List[Dict[str, Any]] = []

    def log_message(self, format, *args):  # noqa: A002
        pass

    def _reply(self, status: int, body: Any = None) -> None:
        raw = json.dumps(body).encode("utf-8") if body is not None else b""
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def _body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length)

    def _section(self) -> str:
        parts = urlsplit(self.path)
        self.requests.append({
            "method": self.command,
            "path": parts.path,
            "query": parse_qs(parts.query),
            "auth": self.headers.get("Authorization"),
            "transfer": self.headers.get("Transfer-Encoding"),
        })
        return parts.path.rsplit("/", 1)[-1]

    def do_GET(self):  # noqa: N802
        section = self._section()
        if section == "broken":
            self._reply(500, {"error": "boom"})
        elif section in self.documents:
            self._reply(200, {"data": self.documents[section]})
        else:
            self._reply(404, {"error": "not found"})

    def do_PUT(self):  # noqa: N802
        body = self._body()
        section = self._section()
        if self.path.startswith("/upload/"):
            self.uploads[self.path] = body
            self._reply(200)
            return
        if section == "readonly":
            self._reply(403, {"error": "forbidden"})
            return
        self.documents[section] = json.loads(body)
        self._reply(200, {"data": self.documents[section]})

    def do_POST(self):  # noqa: N802
        self._section()
        meta = json.loads(self._body())
        if meta.get("key") == "bad":
            self._reply(200, {"uploadUrl": "x"})
            return
        host = f"http://{self.server.server_address[0]}:{self.server.server_address[1]}"
        self._reply(200, {
            "uploadUrl": f"{host}/upload/{meta['key']}",
            "publicUrl": f"https://cdn.example.org/{meta['key']}",
            "key": meta["key"],
        })


@pytest.fixture
def server():
    _Handler.documents = {"hero": {"title": "Remote"}, "flex-a": {"headline": "Flex"}}
    _Handler.uploads = {}
    _Handler.requests = []
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()


@pytest.fixture
def base_url(server) -> str:
    host, port = server.server_address[:2]
    return f"http://{host}:{port}/"


@pytest.fixture
def api(base_url) -> HttpContentBackend:
    backend = HttpContentBackend(base_url, timeout=5, token="secret")
    yield backend
    backend.close()


@pytest.mark.parametrize("section_id, slug", [
    ("hero", "hero"),
    ("flexA", "flex-a"),
    ("nationalImpact", "national-impact"),
    ("impactSection", "impact-section"),
    ("hearOurImpact", "hear-our-impact"),
])
def test_url_slug(section_id: str, slug: str) -> None:
    assert url_slug(section_id) == slug


def test_fetch_unwraps_data(api) -> None:
    assert api.fetch_section("hero") == {"title": "Remote"}
    assert api.fetch_section("flexA") == {"headline": "Flex"}
    seen = _Handler.requests[-1]
    assert seen["path"] == "/api/impact/flex-a"
    assert seen["query"] == {"slug": ["impact-report"]}
    assert seen["auth"] == "Bearer secret"


def test_report_slug_is_sent_on_get_and_put(base_url) -> None:
    backend = HttpContentBackend(base_url, timeout=5, slug="annual-2025")
    backend.fetch_section("hero")
    backend.save_section("mission", {"title": "New"})
    assert [r["query"] for r in _Handler.requests] == [{"slug": ["annual-2025"]}] * 2
    assert _Handler.requests[0]["auth"] is None
    backend.close()


def test_fetch_failures_are_none(api) -> None:
    assert api.fetch_section("missing") is None
    assert api.fetch_section("broken") is None
    assert HttpContentBackend("http://127.0.0.1:9", timeout=0.5).fetch_section("hero") is None


def test_save_section(api) -> None:
    assert api.save_section("mission", {"title": "New"})
    assert _Handler.documents["mission"] == {"title": "New"}
    assert api.save_section("readonly", {"title": "x"}) is False


def test_upload_streams_file(api, png_file) -> None:
    target = api.request_upload_target({"key": "hero/backgroundImage.png", "contentType": "image/png"})
    assert target.public_url == "https://cdn.example.org/hero/backgroundImage.png"
    progress = []
    api.put_file(target, png_file, "image/png", progress.append)
    assert _Handler.uploads["/upload/hero/backgroundImage.png"] == png_file.read_bytes()
    assert progress[-1] == 100
    upload = _Handler.requests[-1]
    assert upload["auth"] is None
    assert upload["transfer"] is None


def test_malformed_signature_raises(api) -> None:
    with pytest.raises(UploadError):
        api.request_upload_target({"key": "bad"})


def test_upload_network_error(api, png_file) -> None:
    target = UploadTarget("http://127.0.0.1:9/upload", "unused", "k")
    with pytest.raises(UploadError):
        api.put_file(target, png_file, "image/png")
