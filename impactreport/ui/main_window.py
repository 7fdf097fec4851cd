"""Main window of the impact report editor."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from PyQt6 import QtCore, QtGui, QtWidgets
from PyQt6.QtWebEngineWidgets import QWebEngineView

from ..config import AppConfig
from ..core import generator
from ..core.debounce import PreviewSynchronizer
from ..core.models import EditForm, schema_for
from ..core.session import EditorSession, SavePolicy
from ..core.storage import UploadError
from ..core.store import EditorStore, FormLockedError, Notice, SaveBlockedError, SelectFile
from .widgets import SectionForm, SectionOrderEditor, SwatchEditor

logger = logging.getLogger(__name__)

APP_TITLE = "Impact Report Editor"
LAYOUT_TAB = "layout"


class MainWindow(QtWidgets.QMainWindow):
    _store_changed = QtCore.pyqtSignal()
    _notice = QtCore.pyqtSignal(object)

    def __init__(self, session: EditorSession, config: AppConfig) -> None:
        super().__init__()
        self.session = session
        self.store: EditorStore = session.store
        self.config = config
        self.setWindowTitle(APP_TITLE)
        self.resize(1320, 820)

        self._forms: Dict[str, SectionForm] = {}
        self._tab_ids: List[str] = []
        self._preview_base = QtCore.QUrl.fromLocalFile(str(config.data_dir) + "/")
        self.preview_sync = PreviewSynchronizer(
            self.update_preview, delay_ms=config.preview_debounce_ms, parent=self)

        self._build_ui()
        self._build_menu()
        self._bind_events()

        self._unsubscribe = [
            self.store.subscribe(lambda _store: self._store_changed.emit()),
            self.store.on_notice(self._notice.emit),
        ]
        self._refresh_all()
        self.update_preview(self.store.form.snapshot())

    # ------------------------------------------------------------------ UI --
    def _build_ui(self) -> None:
        splitter = QtWidgets.QSplitter(self)
        splitter.setOrientation(QtCore.Qt.Orientation.Horizontal)
        self.setCentralWidget(splitter)

        left_panel = QtWidgets.QWidget(self)
        left_layout = QtWidgets.QVBoxLayout(left_panel)
        left_layout.setContentsMargins(6, 6, 6, 6)
        left_layout.setSpacing(6)

        self.tabs = QtWidgets.QTabWidget(left_panel)
        self.tabs.setDocumentMode(True)
        presets = lambda: self.store.swatch  # noqa: E731
        for section_id in self.store.form.section_order:
            form = SectionForm(self.store, section_id, presets=presets)
            self._forms[section_id] = form
            scroll = QtWidgets.QScrollArea(self.tabs)
            scroll.setWidgetResizable(True)
            scroll.setWidget(form)
            self.tabs.addTab(scroll, schema_for(section_id).title)
            self._tab_ids.append(section_id)

        layout_page = QtWidgets.QWidget(self.tabs)
        layout_box = QtWidgets.QVBoxLayout(layout_page)
        layout_box.addWidget(QtWidgets.QLabel("Section order", layout_page))
        self.order_editor = SectionOrderEditor(self.store, layout_page)
        layout_box.addWidget(self.order_editor, 1)
        layout_box.addWidget(QtWidgets.QLabel("Color swatch", layout_page))
        self.swatch_editor = SwatchEditor(self.store, layout_page)
        layout_box.addWidget(self.swatch_editor)
        self.tabs.addTab(layout_page, "Layout")
        self._tab_ids.append(LAYOUT_TAB)

        btn_row = QtWidgets.QHBoxLayout()
        self.btn_discard = QtWidgets.QPushButton("Discard", left_panel)
        self.btn_save = QtWidgets.QPushButton("Save", left_panel)
        self.btn_save.setDefault(True)
        btn_row.addStretch()
        btn_row.addWidget(self.btn_discard)
        btn_row.addWidget(self.btn_save)

        left_layout.addWidget(self.tabs, 1)
        left_layout.addLayout(btn_row)

        right_panel = QtWidgets.QWidget(self)
        right_layout = QtWidgets.QVBoxLayout(right_panel)
        right_layout.setContentsMargins(6, 6, 6, 6)
        right_layout.setSpacing(6)
        self.preview = QWebEngineView(right_panel)
        right_layout.addWidget(QtWidgets.QLabel("Preview", right_panel))
        right_layout.addWidget(self.preview, 1)

        splitter.addWidget(left_panel)
        splitter.addWidget(right_panel)
        splitter.setSizes([560, 760])
        self.left_panel = left_panel

        self.status = self.statusBar()

    def _build_menu(self) -> None:
        bar = self.menuBar()
        if bar is None:
            bar = QtWidgets.QMenuBar(self)
            self.setMenuBar(bar)

        file_menu = bar.addMenu("&File")
        self.act_reload = QtGui.QAction("Reload", self)
        self.act_save = QtGui.QAction("Save", self)
        self.act_save.setShortcut(QtGui.QKeySequence.StandardKey.Save)
        self.act_discard = QtGui.QAction("Discard Changes", self)
        self.act_export = QtGui.QAction("Export Page…", self)
        self.act_quit = QtGui.QAction("Quit", self)
        if file_menu is not None:
            file_menu.addActions([self.act_reload, self.act_save, self.act_discard])
            file_menu.addSeparator()
            file_menu.addAction(self.act_export)
            file_menu.addSeparator()
            file_menu.addAction(self.act_quit)

        help_menu = bar.addMenu("&Help")
        self.act_about = QtGui.QAction("About", self)
        if help_menu is not None:
            help_menu.addAction(self.act_about)

    def _bind_events(self) -> None:
        self._store_changed.connect(self._refresh_all)
        self._notice.connect(self._show_notice)
        self.tabs.currentChanged.connect(self._on_tab_changed)
        for form in self._forms.values():
            form.fileSelected.connect(self.select_file)
        self.btn_save.clicked.connect(self.save)
        self.btn_discard.clicked.connect(self.discard)
        self.act_save.triggered.connect(self.save)
        self.act_discard.triggered.connect(self.discard)
        self.act_reload.triggered.connect(self.reload)
        self.act_export.triggered.connect(self.export_site)
        self.act_quit.triggered.connect(self.close)
        self.act_about.triggered.connect(self.show_about)

    # --------------------------------------------------------------- State --
    def _refresh_all(self) -> None:
        for form in self._forms.values():
            form.refresh()
        self.order_editor.refresh()
        self.swatch_editor.refresh()
        self._sync_tab()
        self._update_actions()
        self.update_window_title()
        if not self.store.saving:
            self.preview_sync.update(self.store.form.snapshot())

    def _sync_tab(self) -> None:
        active = self.store.active_section
        if active in self._tab_ids:
            index = self._tab_ids.index(active)
            if self.tabs.currentIndex() != index:
                self.tabs.blockSignals(True)
                self.tabs.setCurrentIndex(index)
                self.tabs.blockSignals(False)

    def _update_actions(self) -> None:
        busy = self.store.saving or self.store.uploading
        self.left_panel.setEnabled(not self.store.saving)
        self.btn_save.setEnabled(self.store.dirty and not busy)
        self.act_save.setEnabled(self.store.dirty and not busy)
        self.btn_discard.setEnabled(self.store.dirty and not self.store.saving)
        self.act_discard.setEnabled(self.store.dirty and not self.store.saving)
        self.act_reload.setEnabled(not busy)

    def _on_tab_changed(self, index: int) -> None:
        if not 0 <= index < len(self._tab_ids):
            return
        if not self.store.select_section(self._tab_ids[index]):
            # the store posted a notice; put the tab back
            self._sync_tab()

    def _show_notice(self, notice: Notice) -> None:
        timeout = 8000 if notice.level in ("warning", "error") else 4000
        if self.status is not None:
            self.status.showMessage(notice.message, timeout)

    def update_window_title(self) -> None:
        dirty = " •" if self.store.dirty else ""
        self.setWindowTitle(f"{APP_TITLE} — Impact Report{dirty}")

    # ------------------------------------------------------------- Preview --
    def update_preview(self, form: EditForm) -> None:
        try:
            html = generator.render_page(form, self.store.swatch)
        except Exception:
            logger.exception("preview render failed")
            return
        self.preview.setHtml(html, self._preview_base)

    # ------------------------------------------------------------ Commands --
    def _progress(self, label: str, title: str) -> QtWidgets.QProgressDialog:
        progress = QtWidgets.QProgressDialog(label, None, 0, 100, self)
        progress.setWindowTitle(title)
        progress.setWindowModality(QtCore.Qt.WindowModality.WindowModal)
        progress.setMinimumDuration(0)
        progress.setCancelButton(None)
        return progress

    def reload(self) -> None:
        if not self.maybe_save_before("reloading"):
            return
        progress = self._progress("Loading impact report…", "Loading")
        progress.setRange(0, 0)
        QtCore.QCoreApplication.processEvents(QtCore.QEventLoop.ProcessEventsFlag.AllEvents, 50)
        try:
            report = self.session.load()
        finally:
            progress.close()
        if self.status is not None and not report.failed:
            self.status.showMessage("Impact report loaded", 3000)
        self.preview_sync.flush()

    def select_file(self, section_id: str, key: str, path: str) -> None:
        try:
            self.store.dispatch(SelectFile(section_id, key, path))
        except FormLockedError:
            return
        progress = self._progress(f"Uploading {Path(path).name}…", "Uploading")

        def on_progress(percent: int) -> None:
            progress.setValue(percent)
            QtCore.QCoreApplication.processEvents(QtCore.QEventLoop.ProcessEventsFlag.AllEvents, 50)

        try:
            url = self.session.upload_pending(section_id, key, on_progress)
        except UploadError as exc:
            # the selection stays pending and is retried on save
            QtWidgets.QMessageBox.warning(self, "Upload", str(exc))
            return
        finally:
            progress.close()
        if url and self.status is not None:
            self.status.showMessage("Image uploaded", 3000)

    def save(self) -> None:
        if not self.store.dirty:
            return
        policy = SavePolicy.from_name(self.config.save_policy)
        progress = self._progress("Saving impact report…", "Saving")
        progress.setRange(0, 0)
        QtCore.QCoreApplication.processEvents(QtCore.QEventLoop.ProcessEventsFlag.AllEvents, 50)
        try:
            report = self.session.save(policy)
        except SaveBlockedError as exc:
            if self.status is not None:
                self.status.showMessage(str(exc), 5000)
            return
        finally:
            progress.close()
        if not report.ok:
            QtWidgets.QMessageBox.critical(self, "Save failed", report.summary())

    def discard(self) -> None:
        self.session.discard()

    def export_site(self) -> None:
        out_dir = QtWidgets.QFileDialog.getExistingDirectory(self, "Export Page To…")
        if not out_dir:
            return
        try:
            generator.render_site(self.store.form, self.store.swatch, out_dir)
        except OSError as exc:
            QtWidgets.QMessageBox.warning(self, "Export", f"Export failed: {exc}")
            return
        if self.status is not None:
            self.status.showMessage(f"Exported page to {out_dir}", 5000)

    def maybe_save_before(self, action_label: str) -> bool:
        """Return True to proceed, False to abort (user chose Cancel)."""
        if not self.store.dirty:
            return True
        box = QtWidgets.QMessageBox(self)
        box.setIcon(QtWidgets.QMessageBox.Icon.Warning)
        box.setWindowTitle("Unsaved changes")
        box.setText(f"Save changes to the impact report before {action_label}?")
        box.setInformativeText("If you don’t save, your changes will be lost.")
        save_btn = box.addButton(
            "Save", QtWidgets.QMessageBox.ButtonRole.AcceptRole)
        discard_btn = box.addButton(
            "Don’t Save", QtWidgets.QMessageBox.ButtonRole.DestructiveRole)
        box.addButton("Cancel", QtWidgets.QMessageBox.ButtonRole.RejectRole)
        box.setDefaultButton(save_btn)
        box.exec()

        clicked = box.clickedButton()
        if clicked is save_btn:
            self.save()
            return not self.store.dirty
        if clicked is discard_btn:
            return True
        return False

    def show_about(self) -> None:
        QtWidgets.QMessageBox.information(
            self,
            "About",
            f"{APP_TITLE}\n\nEdit the sections of the public impact report and preview them live.",
        )

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # noqa: N802 (Qt override)
        if self.store.saving or not self.maybe_save_before("quitting"):
            event.ignore()
            return
        self.preview_sync.close()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        super().closeEvent(event)
