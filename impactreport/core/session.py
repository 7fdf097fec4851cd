"""Load, save and discard orchestration around the editor store."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import (
    SECTION_SCHEMAS,
    EditForm,
    PendingFile,
    normalize_section_order,
    normalize_swatch,
    schema_for,
    section_from_content,
    section_to_payload,
)
from .storage import (
    DEFAULTS_DOCUMENT,
    ContentBackend,
    ProgressCallback,
    UploadError,
    check_image,
    upload_key,
)
from .store import EditorStore, ResolveUpload

logger = logging.getLogger(__name__)


class SavePolicy(enum.Enum):
    BEST_EFFORT = "best-effort"
    ALL_OR_NOTHING = "all-or-nothing"

    @classmethod
    def from_name(cls, name: str) -> "SavePolicy":
        for policy in cls:
            if policy.value == name:
                return policy
        return cls.BEST_EFFORT


@dataclass
class LoadReport:
    loaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class SaveReport:
    saved: List[str] = field(default_factory=list)
    failed: Optional[str] = None
    skipped: List[str] = field(default_factory=list)
    rolled_back: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed is None and self.error is None

    @property
    def partial(self) -> bool:
        """Earlier sections were written even though the save failed."""
        return not self.ok and bool(set(self.saved) - set(self.rolled_back))

    def summary(self) -> str:
        if self.ok:
            return "Impact report saved"
        parts = [f"Failed to save {self.failed or 'impact report'}"]
        if self.error:
            parts[0] += f": {self.error}"
        if self.saved:
            parts.append("already saved: " + ", ".join(self.saved))
        if self.rolled_back:
            parts.append("restored: " + ", ".join(self.rolled_back))
        if self.skipped:
            parts.append("not saved: " + ", ".join(self.skipped))
        return "; ".join(parts)


class EditorSession:
    """Connects the store to a content backend."""

    def __init__(
        self,
        store: EditorStore,
        backend: ContentBackend,
        policy: SavePolicy = SavePolicy.BEST_EFFORT,
    ) -> None:
        self.store = store
        self.backend = backend
        self.policy = policy

    # ---------------------------------------------------------------- load --
    def _fetch(self, document_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.backend.fetch_section(document_id)
        except Exception as exc:  # backend failures only degrade one section
            logger.warning("[%s] fetch raised: %s", document_id, exc)
            return None

    def fetch_form(self) -> tuple[EditForm, List[str], LoadReport]:
        """Fetch every section independently; failures keep defaults."""
        report = LoadReport()
        form = EditForm.defaults()
        for section_id, schema in SECTION_SCHEMAS.items():
            raw = self._fetch(section_id)
            if raw is None:
                report.failed.append(section_id)
                report.warnings.append(
                    f"Could not load {schema.title}; using defaults")
                continue
            form.sections[section_id] = section_from_content(schema, raw)
            report.loaded.append(section_id)

        defaults = self._fetch(DEFAULTS_DOCUMENT) or {}
        form.section_order = normalize_section_order(defaults.get("sectionOrder"))
        swatch = normalize_swatch(defaults.get("colorSwatch"))
        return form, swatch, report

    def load(self) -> LoadReport:
        form, swatch, report = self.fetch_form()
        self.apply_loaded(form, swatch, report)
        return report

    def apply_loaded(self, form: EditForm, swatch: List[str], report: LoadReport) -> None:
        self.store.reset(form, swatch)
        for warning in report.warnings:
            self.store.notify("warning", warning)

    # ---------------------------------------------------------------- save --
    def upload_pending(
        self,
        section_id: str,
        key: str,
        progress: Optional[ProgressCallback] = None,
    ) -> Optional[str]:
        """Upload the file selected for ``section_id.key``.

        The store counts the upload as in progress so a save cannot start
        meanwhile. Returns the public URL, or None when nothing was pending.
        """
        pending = self.store.value(section_id, key)
        if not isinstance(pending, PendingFile):
            return None
        token = f"{section_id}.{key}"
        self.store.begin_upload(token)
        try:
            url = self._upload(section_id, key, pending, progress)
        finally:
            self.store.end_upload(token)
        self.store.dispatch(ResolveUpload(section_id, key, pending.path, url))
        return url

    def _upload(
        self,
        section_id: str,
        key: str,
        pending: PendingFile,
        progress: Optional[ProgressCallback] = None,
    ) -> str:
        content_type = check_image(pending.path, pending.content_type)
        target = self.backend.request_upload_target({
            "contentType": content_type,
            "key": upload_key(section_id, key, content_type),
            "section": section_id,
            "field": key,
        })
        logger.info("[%s] uploading %s as %s", section_id, pending.name, target.key)
        self.backend.put_file(target, pending.path, content_type, progress)
        return target.public_url

    def _save_one(self, section_id: str, payload: Dict[str, Any]) -> Optional[str]:
        """Returns an error message, or None on success."""
        try:
            ok = self.backend.save_section(section_id, payload)
        except Exception as exc:
            logger.exception("[%s] save raised", section_id)
            return str(exc) or type(exc).__name__
        return None if ok else "the server rejected the update"

    def save(self, policy: Optional[SavePolicy] = None) -> SaveReport:
        """Save every section in order, stopping at the first failure."""
        policy = policy or self.policy
        previous = self.store.state.snapshot
        form = self.store.begin_save()
        report = SaveReport()
        order = list(form.section_order)
        current: Optional[str] = None
        try:
            for index, section_id in enumerate(order):
                current = section_id
                values = form.sections[section_id]
                for key, value in list(values.items()):
                    if isinstance(value, PendingFile):
                        url = self._upload(section_id, key, value)
                        values[key] = url
                        self.store.apply_during_save(
                            ResolveUpload(section_id, key, value.path, url))
                payload = section_to_payload(schema_for(section_id), values)
                logger.info("[%s] save payload keys=%s", section_id, sorted(payload))
                error = self._save_one(section_id, payload)
                if error is not None:
                    report.failed = section_id
                    report.error = error
                    report.skipped = order[index + 1:]
                    break
                report.saved.append(section_id)
            else:
                current = DEFAULTS_DOCUMENT
                error = self._save_one(DEFAULTS_DOCUMENT, {
                    "colorSwatch": self.store.swatch,
                    "sectionOrder": order,
                })
                if error is not None:
                    report.failed = DEFAULTS_DOCUMENT
                    report.error = error
        except UploadError as exc:
            self._abort(report, order, current, f"upload failed: {exc}")
        except Exception as exc:
            logger.exception("save aborted")
            self._abort(report, order, current, str(exc) or type(exc).__name__)

        if not report.ok and policy is SavePolicy.ALL_OR_NOTHING and previous is not None:
            self._roll_back(previous, report)
        if not report.ok:
            logger.error("save failed: %s", report.summary())
        self.store.finish_save(report.ok, report.summary())
        return report

    def _abort(self, report: SaveReport, order: List[str],
               section_id: Optional[str], error: str) -> None:
        report.failed = report.failed or section_id or "impact report"
        report.error = error
        if section_id in order:
            report.skipped = order[order.index(section_id) + 1:]

    def _roll_back(self, previous: EditForm, report: SaveReport) -> None:
        # best-effort compensation: write back what was last known to be saved
        for section_id in reversed(report.saved):
            payload = section_to_payload(
                schema_for(section_id), previous.sections[section_id])
            if self._save_one(section_id, payload) is None:
                report.rolled_back.append(section_id)
            else:
                logger.error("[%s] could not restore previous content", section_id)

    # ------------------------------------------------------------- discard --
    def discard(self) -> bool:
        if not self.store.discard():
            return False
        defaults = self._fetch(DEFAULTS_DOCUMENT)
        if defaults is not None:
            self.store.set_swatch(defaults.get("colorSwatch"))
        return True
