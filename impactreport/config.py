"""Application settings stored as JSON, with environment overrides."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .core.debounce import DEFAULT_DELAY_MS
from .core.remote import DEFAULT_BACKEND_URL, DEFAULT_REPORT_SLUG

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".impactreport"
SETTINGS_PATH = Path(os.getenv("IMPACT_SETTINGS_PATH", str(APP_DIR / "settings.json")))

DEFAULT_SETTINGS: Dict[str, str] = {
    "backend": "file",
    "backend_url": DEFAULT_BACKEND_URL,
    "report_slug": DEFAULT_REPORT_SLUG,
    "data_dir": str(APP_DIR / "content"),
    "preview_debounce_ms": str(DEFAULT_DELAY_MS),
    "save_policy": "best-effort",
    "log_level": "INFO",
}

ENV_OVERRIDES = {
    "backend_url": "IMPACT_BACKEND_URL",
    "data_dir": "IMPACT_DATA_DIR",
    "log_level": "IMPACT_LOG_LEVEL",
    "backend": "IMPACT_BACKEND",
    "report_slug": "IMPACT_REPORT_SLUG",
}


class SettingsManager:
    """Very small settings helper storing JSON data."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else SETTINGS_PATH
        self._settings: Dict[str, str] = {}
        self.load()

    def load(self) -> None:
        changed = False
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                self._settings = {str(k): str(v) for k, v in data.items()}
            except (OSError, ValueError, AttributeError) as exc:
                logger.warning("ignoring unreadable settings %s: %s", self.path, exc)
                self._settings = {}
        else:
            self._settings = {}

        for key, value in DEFAULT_SETTINGS.items():
            if self._settings.get(key, "") == "":
                self._settings[key] = value
                changed = True

        if changed:
            try:
                self.save()
            except OSError as exc:
                logger.debug("settings not written: %s", exc)

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._settings, indent=2),
            encoding="utf-8")

    def get(self, key: str, default: str = "") -> str:
        env_name = ENV_OVERRIDES.get(key)
        if env_name and os.getenv(env_name):
            return os.environ[env_name]
        return self._settings.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._settings[key] = value
        self.save()

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(self.get(key, str(default)))
        except (TypeError, ValueError):
            return default


@dataclass(frozen=True)
class AppConfig:
    backend: str
    backend_url: str
    data_dir: Path
    preview_debounce_ms: int
    save_policy: str
    log_level: str
    report_slug: str = DEFAULT_REPORT_SLUG

    @classmethod
    def from_settings(cls, settings: SettingsManager) -> "AppConfig":
        backend = settings.get("backend", "file")
        if backend not in ("file", "http"):
            backend = "file"
        return cls(
            backend=backend,
            backend_url=settings.get("backend_url", DEFAULT_BACKEND_URL),
            data_dir=Path(settings.get("data_dir")).expanduser(),
            preview_debounce_ms=max(0, settings.get_int(
                "preview_debounce_ms", DEFAULT_DELAY_MS)),
            save_policy=settings.get("save_policy", "best-effort"),
            log_level=settings.get("log_level", "INFO").upper(),
            report_slug=(settings.get("report_slug", DEFAULT_REPORT_SLUG).strip()
                         or DEFAULT_REPORT_SLUG),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
