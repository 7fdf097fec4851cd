"""State container for the edit form: dirty tracking, snapshots, discard."""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set

from .models import EditForm, PendingFile, normalize_swatch, schema_for

logger = logging.getLogger(__name__)

NAVIGATION_BLOCKED_MESSAGE = "Save or discard changes before switching tabs"


class EditorError(Exception):
    """Base class for editor state errors."""


class FormLockedError(EditorError):
    """Raised when the form is mutated while a save is running."""


class SaveBlockedError(EditorError):
    """Raised when a save cannot start."""


class EditorPhase(enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass(frozen=True)
class Notice:
    level: str  # info, success, warning, error
    message: str


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetField:
    section_id: str
    key: str
    value: Any


@dataclass(frozen=True)
class SelectFile:
    section_id: str
    key: str
    path: str
    content_type: str = ""


@dataclass(frozen=True)
class ResolveUpload:
    section_id: str
    key: str
    path: str
    public_url: str


@dataclass(frozen=True)
class ReorderSections:
    order: tuple


@dataclass(frozen=True)
class MoveSection:
    section_id: str
    offset: int


@dataclass(frozen=True)
class ToggleSection:
    section_id: str
    enabled: bool


@dataclass(frozen=True)
class SetSwatchColor:
    index: int
    color: str


Action = Any
Listener = Callable[["EditorStore"], None]
NoticeListener = Callable[[Notice], None]


@dataclass
class EditorState:
    form: EditForm = field(default_factory=EditForm.defaults)
    phase: EditorPhase = EditorPhase.CLEAN
    snapshot: Optional[EditForm] = None
    active_section: str = "hero"
    swatch: List[str] = field(default_factory=lambda: normalize_swatch(None))
    uploads: Set[str] = field(default_factory=set)
    last_error: Optional[str] = None


class EditorStore:
    """Single authoritative copy of the form.

    Every mutation goes through :meth:`dispatch` so the dirty transition is
    decided in one place.
    """

    def __init__(self, form: Optional[EditForm] = None) -> None:
        self.state = EditorState()
        if form is not None:
            self.state.form = form
        self.state.snapshot = self.state.form.snapshot()
        self._listeners: List[Listener] = []
        self._notice_listeners: List[NoticeListener] = []

    # ----------------------------------------------------------- accessors --
    @property
    def form(self) -> EditForm:
        return self.state.form

    @property
    def phase(self) -> EditorPhase:
        return self.state.phase

    @property
    def dirty(self) -> bool:
        return self.state.phase is not EditorPhase.CLEAN

    @property
    def saving(self) -> bool:
        return self.state.phase is EditorPhase.SAVING

    @property
    def active_section(self) -> str:
        return self.state.active_section

    @property
    def swatch(self) -> List[str]:
        return list(self.state.swatch)

    @property
    def uploading(self) -> bool:
        return bool(self.state.uploads)

    def value(self, section_id: str, key: str) -> Any:
        return self.state.form.sections[section_id][key]

    # ---------------------------------------------------------- listeners --
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_notice(self, listener: NoticeListener) -> Callable[[], None]:
        self._notice_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._notice_listeners:
                self._notice_listeners.remove(listener)

        return unsubscribe

    def notify(self, level: str, message: str) -> None:
        notice = Notice(level, message)
        for listener in list(self._notice_listeners):
            listener(notice)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------ actions --
    def dispatch(self, action: Action) -> bool:
        """Apply ``action``; returns True when the form changed."""
        if self.saving:
            raise FormLockedError("The form cannot change while saving")
        changed = self._reduce(action)
        if changed:
            if self.state.phase is EditorPhase.CLEAN:
                logger.debug("form dirty after %s", type(action).__name__)
            self.state.phase = EditorPhase.DIRTY
            self._changed()
        return changed

    def _reduce(self, action: Action) -> bool:
        form = self.state.form
        if isinstance(action, SetField):
            section = form.sections[action.section_id]
            schema_for(action.section_id).field(action.key)
            if section.get(action.key) == action.value:
                return False
            section[action.key] = copy.deepcopy(action.value)
            return True
        if isinstance(action, SelectFile):
            spec = schema_for(action.section_id).field(action.key)
            if spec.kind != "image":
                raise ValueError(f"{action.key} is not an image field")
            form.sections[action.section_id][action.key] = PendingFile(
                action.path, action.content_type)
            return True
        if isinstance(action, ResolveUpload):
            section = form.sections[action.section_id]
            current = section.get(action.key)
            if not isinstance(current, PendingFile) or current.path != action.path:
                # selection replaced or discarded meanwhile
                return False
            section[action.key] = action.public_url
            return True
        if isinstance(action, ReorderSections):
            order = list(action.order)
            if sorted(order) != sorted(form.section_order):
                raise ValueError("Reordering must keep the same sections")
            if order == form.section_order:
                return False
            form.section_order = order
            return True
        if isinstance(action, MoveSection):
            order = form.section_order
            idx = order.index(action.section_id)
            target = max(0, min(len(order) - 1, idx + action.offset))
            if target == idx:
                return False
            order.insert(target, order.pop(idx))
            return True
        if isinstance(action, ToggleSection):
            section = form.sections[action.section_id]
            if section.get("enabled", True) == action.enabled:
                return False
            section["enabled"] = action.enabled
            return True
        if isinstance(action, SetSwatchColor):
            if not 0 <= action.index < len(self.state.swatch):
                raise IndexError(action.index)
            if self.state.swatch[action.index] == action.color:
                return False
            self.state.swatch[action.index] = action.color
            return True
        raise TypeError(f"Unknown action {action!r}")

    # -------------------------------------------------------- navigation --
    def select_section(self, section_id: str) -> bool:
        if section_id == self.state.active_section:
            return True
        if self.dirty:
            self.notify("info", NAVIGATION_BLOCKED_MESSAGE)
            return False
        self.state.active_section = section_id
        self._changed()
        return True

    # ---------------------------------------------------------- lifecycle --
    def reset(self, form: EditForm, swatch: Optional[List[str]] = None) -> None:
        """Install a freshly loaded form and take its snapshot."""
        if self.saving:
            raise FormLockedError("Cannot reload while saving")
        self.state.form = form
        self.state.snapshot = form.snapshot()
        if swatch is not None:
            self.state.swatch = normalize_swatch(swatch)
        self.state.phase = EditorPhase.CLEAN
        self.state.last_error = None
        self._changed()

    def set_swatch(self, swatch: List[str]) -> None:
        """Replace the shared swatch without touching the dirty state."""
        self.state.swatch = normalize_swatch(swatch)
        self._changed()

    def begin_upload(self, token: str) -> None:
        self.state.uploads.add(token)
        self._changed()

    def end_upload(self, token: str) -> None:
        self.state.uploads.discard(token)
        self._changed()

    def begin_save(self) -> EditForm:
        """Enter the saving phase and return a copy of the form to persist."""
        if self.saving:
            raise SaveBlockedError("A save is already running")
        if self.uploading:
            raise SaveBlockedError("Wait for uploads to finish before saving")
        self.state.phase = EditorPhase.SAVING
        self._changed()
        return self.state.form.snapshot()

    def apply_during_save(self, action: Action) -> None:
        """Let the save itself write back results such as uploaded URLs."""
        if not self.saving:
            raise EditorError("No save in progress")
        self._reduce(action)
        self._changed()

    def finish_save(self, ok: bool, message: str = "") -> None:
        if not self.saving:
            raise EditorError("No save in progress")
        if ok:
            self.state.snapshot = self.state.form.snapshot()
            self.state.phase = EditorPhase.CLEAN
            self.state.last_error = None
            self._changed()
            self.notify("success", message or "Impact report saved")
        else:
            self.state.phase = EditorPhase.DIRTY
            self.state.last_error = message or "Failed to save impact report"
            self._changed()
            self.notify("error", self.state.last_error)

    def discard(self) -> bool:
        if self.state.phase is not EditorPhase.DIRTY or self.state.snapshot is None:
            return False
        self.state.form = self.state.snapshot.snapshot()
        self.state.phase = EditorPhase.CLEAN
        self.state.last_error = None
        self._changed()
        self.notify("info", "Changes discarded")
        return True
