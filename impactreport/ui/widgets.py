"""Editor widgets bound to the store."""

from __future__ import annotations

import math
from typing import Callable, Dict, List, Optional

from PyQt6 import QtCore, QtGui, QtWidgets

from ..core import gradients
from ..core.binding import MIN_STOPS, GradientFieldBinding
from ..core.models import (
    DEFAULT_SECTION_ORDER,
    FieldSpec,
    PendingFile,
    SectionSchema,
    schema_for,
)
from ..core.store import (
    EditorStore,
    MoveSection,
    ReorderSections,
    SetField,
    SetSwatchColor,
    ToggleSection,
)

SwatchProvider = Callable[[], List[str]]


class ColorButton(QtWidgets.QPushButton):
    """Small helper button that opens a color dialog and shows the current color."""

    colorChanged = QtCore.pyqtSignal(str)

    def __init__(self, color: str = "#ffffff",
                 parent: Optional[QtWidgets.QWidget] = None,
                 presets: Optional[SwatchProvider] = None) -> None:
        super().__init__(parent)
        self._color = color or "#ffffff"
        self._presets = presets
        self.setMinimumWidth(80)
        self.clicked.connect(self._choose_color)
        self._update_style()

    def color(self) -> str:
        return self._color

    def setColor(self, color: str) -> None:
        if not color:
            return
        if color == self._color:
            return
        self._color = color
        self._update_style()
        self.colorChanged.emit(color)

    def _choose_color(self) -> None:
        if self._presets is not None:
            for index, preset in enumerate(self._presets()[:16]):
                QtWidgets.QColorDialog.setCustomColor(index, QtGui.QColor(preset))
        dialog_color = QtWidgets.QColorDialog.getColor(
            QtGui.QColor(gradients.to_hex(self._color)), self.window())
        if dialog_color.isValid():
            self.setColor(dialog_color.name())

    def _update_style(self) -> None:
        hex_color = gradients.to_hex(self._color)
        self.setText(self._color.upper())
        self.setStyleSheet(
            f"background:{hex_color}; color:{gradients.readable_text_color(hex_color)};"
            " border: 1px solid rgba(148,163,184,0.6); border-radius:4px; padding: 6px;"
        )


def qt_gradient(spec: gradients.GradientSpec) -> str:
    """Qt style sheets have no ``linear-gradient``; map to ``qlineargradient``."""
    theta = math.radians(gradients.clamp(spec.degree, 0.0, 360.0))
    dx, dy = math.sin(theta) / 2, -math.cos(theta) / 2
    count = len(spec.stops)
    stops = []
    for index, stop in enumerate(spec.stops):
        r, g, b = stop.rgb
        pos = index / (count - 1) if count > 1 else 0
        stops.append(f"stop:{pos:.3f} rgba({r}, {g}, {b}, {round(stop.alpha * 255)})")
    return (
        f"qlineargradient(x1:{0.5 - dx:.3f}, y1:{0.5 - dy:.3f}, "
        f"x2:{0.5 + dx:.3f}, y2:{0.5 + dy:.3f}, {', '.join(stops)})"
    )


class GradientEditor(QtWidgets.QWidget):
    """Degree, stop colors and stop alphas of one gradient field."""

    def __init__(self, binding: GradientFieldBinding,
                 presets: Optional[SwatchProvider] = None,
                 parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.binding = binding
        self._presets = presets
        self._color_buttons: List[ColorButton] = []
        self._alpha_spins: List[QtWidgets.QDoubleSpinBox] = []

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self.swatch = QtWidgets.QLabel(self)
        self.swatch.setFixedHeight(28)
        layout.addWidget(self.swatch)

        head = QtWidgets.QHBoxLayout()
        head.addWidget(QtWidgets.QLabel("Angle", self))
        self.degree_spin = QtWidgets.QSpinBox(self)
        # stored values may predate clamping, so 0 is shown as-is
        self.degree_spin.setRange(0, 360)
        self.degree_spin.setSuffix("°")
        self.degree_spin.setKeyboardTracking(False)
        head.addWidget(self.degree_spin)
        head.addStretch()
        self.btn_add_stop = QtWidgets.QPushButton("Add stop", self)
        self.btn_remove_stop = QtWidgets.QPushButton("Remove stop", self)
        head.addWidget(self.btn_add_stop)
        head.addWidget(self.btn_remove_stop)
        layout.addLayout(head)

        self.stops_layout = QtWidgets.QGridLayout()
        self.stops_layout.setHorizontalSpacing(8)
        layout.addLayout(self.stops_layout)

        self.degree_spin.valueChanged.connect(self._on_degree_changed)
        self.btn_add_stop.clicked.connect(self._on_add_stop)
        self.btn_remove_stop.clicked.connect(self._on_remove_stop)
        self.refresh()

    def stop_count(self) -> int:
        return len(self._color_buttons)

    def color_button(self, index: int) -> ColorButton:
        return self._color_buttons[index]

    def alpha_spin(self, index: int) -> QtWidgets.QDoubleSpinBox:
        return self._alpha_spins[index]

    def _rebuild_rows(self, count: int) -> None:
        while self.stops_layout.count():
            item = self.stops_layout.takeAt(0)
            widget = item.widget() if item is not None else None
            if widget is not None:
                widget.deleteLater()
        self._color_buttons = []
        self._alpha_spins = []
        for index in range(count):
            label = QtWidgets.QLabel(f"Stop {index + 1}", self)
            button = ColorButton("#000000", self, presets=self._presets)
            spin = QtWidgets.QDoubleSpinBox(self)
            spin.setRange(0.0, 1.0)
            spin.setSingleStep(0.05)
            spin.setDecimals(2)
            spin.setKeyboardTracking(False)
            spin.setPrefix("α ")
            button.colorChanged.connect(
                lambda color, i=index: self.binding.stop(i).commit(color))
            spin.valueChanged.connect(
                lambda value, i=index: self.binding.stop(i).set_alpha(value))
            self.stops_layout.addWidget(label, index, 0)
            self.stops_layout.addWidget(button, index, 1)
            self.stops_layout.addWidget(spin, index, 2)
            self._color_buttons.append(button)
            self._alpha_spins.append(spin)

    def refresh(self) -> None:
        spec = self.binding.spec()
        if len(spec.stops) != len(self._color_buttons):
            self._rebuild_rows(len(spec.stops))
        self.degree_spin.blockSignals(True)
        self.degree_spin.setValue(int(round(gradients.clamp(spec.degree, 0, 360))))
        self.degree_spin.blockSignals(False)
        for stop, button, spin in zip(spec.stops, self._color_buttons, self._alpha_spins):
            button.blockSignals(True)
            button.setColor(stop.color_hex)
            button.blockSignals(False)
            spin.blockSignals(True)
            spin.setValue(stop.alpha)
            spin.blockSignals(False)
        self.btn_remove_stop.setEnabled(len(spec.stops) > MIN_STOPS)
        self.swatch.setStyleSheet(
            f"background: {qt_gradient(spec)}; border-radius: 4px;")
        self.swatch.setToolTip(self.binding.css())

    def _on_degree_changed(self, value: int) -> None:
        self.binding.set_degree(value)

    def _on_add_stop(self) -> None:
        spec = self.binding.spec()
        self.binding.add_stop(spec.stops[-1].color_hex)

    def _on_remove_stop(self) -> None:
        self.binding.remove_stop(len(self.binding.spec().stops) - 1)


class ImageField(QtWidgets.QWidget):
    """Shows the current image URL and lets the editor pick a new file."""

    fileSelected = QtCore.pyqtSignal(str)
    cleared = QtCore.pyqtSignal()

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self.label = QtWidgets.QLabel("No image", self)
        self.label.setTextInteractionFlags(
            QtCore.Qt.TextInteractionFlag.TextSelectableByMouse)
        self.btn_choose = QtWidgets.QPushButton("Choose…", self)
        self.btn_clear = QtWidgets.QPushButton("Clear", self)
        layout.addWidget(self.label, 1)
        layout.addWidget(self.btn_choose)
        layout.addWidget(self.btn_clear)
        self.btn_choose.clicked.connect(self._choose)
        self.btn_clear.clicked.connect(self.cleared)

    def set_value(self, value: object) -> None:
        if isinstance(value, PendingFile):
            self.label.setText(f"{value.name} (not uploaded yet)")
        elif value:
            self.label.setText(str(value))
        else:
            self.label.setText("No image")
        self.btn_clear.setEnabled(bool(value))

    def _choose(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Choose image", "", "Images (*.jpg *.jpeg *.png *.webp)")
        if path:
            self.fileSelected.emit(path)


class SectionForm(QtWidgets.QWidget):
    """Generic form for one section, built from its schema."""

    fileSelected = QtCore.pyqtSignal(str, str, str)  # section, key, path

    def __init__(self, store: EditorStore, section_id: str,
                 presets: Optional[SwatchProvider] = None,
                 parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.store = store
        self.section_id = section_id
        self.schema: SectionSchema = schema_for(section_id)
        self._presets = presets
        self._editors: Dict[str, QtWidgets.QWidget] = {}

        form = QtWidgets.QFormLayout(self)
        form.setHorizontalSpacing(12)
        form.setVerticalSpacing(10)
        self.enabled_check = QtWidgets.QCheckBox("Show this section", self)
        self.enabled_check.clicked.connect(
            lambda checked: self.store.dispatch(ToggleSection(section_id, checked)))
        form.addRow(self.enabled_check)
        for spec in self.schema.fields:
            editor = self._make_editor(spec)
            self._editors[spec.key] = editor
            form.addRow(spec.label, editor)
        self.refresh()

    def editor(self, key: str) -> QtWidgets.QWidget:
        return self._editors[key]

    def _set(self, key: str, value: object) -> None:
        self.store.dispatch(SetField(self.section_id, key, value))

    def _make_editor(self, spec: FieldSpec) -> QtWidgets.QWidget:
        key = spec.key
        if spec.kind == "gradient":
            return GradientEditor(
                GradientFieldBinding(self.store, self.section_id, key),
                presets=self._presets, parent=self)
        if spec.kind == "color":
            button = ColorButton(spec.default or "#ffffff", self, presets=self._presets)
            button.colorChanged.connect(lambda color, k=key: self._set(k, color))
            return button
        if spec.kind == "bool":
            check = QtWidgets.QCheckBox(self)
            check.clicked.connect(lambda checked, k=key: self._set(k, checked))
            return check
        if spec.kind == "multiline":
            text = QtWidgets.QPlainTextEdit(self)
            text.setFixedHeight(90)
            text.textChanged.connect(
                lambda k=key, w=text: self._set(k, w.toPlainText()))
            return text
        if spec.kind == "image":
            image = ImageField(self)
            image.fileSelected.connect(
                lambda path, k=key: self.fileSelected.emit(self.section_id, k, path))
            image.cleared.connect(lambda k=key: self._set(k, None))
            return image
        line = QtWidgets.QLineEdit(self)
        if spec.kind == "list":
            line.setPlaceholderText("Comma separated")
            line.textEdited.connect(
                lambda text, k=key: self._set(
                    k, [part.strip() for part in text.split(",") if part.strip()]))
        else:
            line.textEdited.connect(lambda text, k=key: self._set(k, text))
        return line

    def refresh(self) -> None:
        values = self.store.form.sections[self.section_id]
        self.enabled_check.setChecked(bool(values.get("enabled", True)))
        for spec in self.schema.fields:
            editor = self._editors[spec.key]
            value = values.get(spec.key)
            editor.blockSignals(True)
            try:
                if isinstance(editor, GradientEditor):
                    editor.refresh()
                elif isinstance(editor, ColorButton):
                    editor.setColor(value or spec.default)
                elif isinstance(editor, QtWidgets.QCheckBox):
                    editor.setChecked(bool(value))
                elif isinstance(editor, QtWidgets.QPlainTextEdit):
                    if editor.toPlainText() != (value or ""):
                        editor.setPlainText(value or "")
                elif isinstance(editor, ImageField):
                    editor.set_value(value)
                elif isinstance(editor, QtWidgets.QLineEdit):
                    text = ", ".join(value) if isinstance(value, list) else (value or "")
                    if spec.kind == "list" and editor.hasFocus():
                        # keep what is being typed, e.g. a trailing comma
                        continue
                    if editor.text() != text:
                        editor.setText(text)
            finally:
                editor.blockSignals(False)


class SectionOrderEditor(QtWidgets.QWidget):
    """Reorder sections and switch them on or off."""

    def __init__(self, store: EditorStore,
                 parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.store = store
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self.list = QtWidgets.QListWidget(self)
        self.list.setSelectionMode(
            QtWidgets.QAbstractItemView.SelectionMode.SingleSelection)
        layout.addWidget(self.list, 1)
        row = QtWidgets.QHBoxLayout()
        self.btn_up = QtWidgets.QPushButton("Move up", self)
        self.btn_down = QtWidgets.QPushButton("Move down", self)
        row.addWidget(self.btn_up)
        self.btn_reset = QtWidgets.QPushButton("Reset to default order", self)
        row.addWidget(self.btn_down)
        row.addStretch(1)
        row.addWidget(self.btn_reset)
        layout.addLayout(row)

        self.btn_up.clicked.connect(lambda: self._move(-1))
        self.btn_down.clicked.connect(lambda: self._move(1))
        self.btn_reset.clicked.connect(self.reset_order)
        self.list.itemChanged.connect(self._on_item_changed)
        self.refresh()

    def _current_id(self) -> Optional[str]:
        item = self.list.currentItem()
        return item.data(QtCore.Qt.ItemDataRole.UserRole) if item else None

    def _move(self, offset: int) -> None:
        section_id = self._current_id()
        if section_id is None:
            return
        self.store.dispatch(MoveSection(section_id, offset))
        order = self.store.form.section_order
        self.list.setCurrentRow(order.index(section_id))

    def reset_order(self) -> None:
        if self.store.dispatch(ReorderSections(tuple(DEFAULT_SECTION_ORDER))):
            self.refresh()

    def _on_item_changed(self, item: QtWidgets.QListWidgetItem) -> None:
        section_id = item.data(QtCore.Qt.ItemDataRole.UserRole)
        checked = item.checkState() == QtCore.Qt.CheckState.Checked
        self.store.dispatch(ToggleSection(section_id, checked))

    def refresh(self) -> None:
        current = self._current_id()
        self.list.blockSignals(True)
        self.list.clear()
        for section_id in self.store.form.section_order:
            item = QtWidgets.QListWidgetItem(schema_for(section_id).title)
            item.setData(QtCore.Qt.ItemDataRole.UserRole, section_id)
            item.setFlags(item.flags() | QtCore.Qt.ItemFlag.ItemIsUserCheckable)
            enabled = self.store.form.sections[section_id].get("enabled", True)
            item.setCheckState(
                QtCore.Qt.CheckState.Checked if enabled else QtCore.Qt.CheckState.Unchecked)
            self.list.addItem(item)
        if current in self.store.form.section_order:
            self.list.setCurrentRow(self.store.form.section_order.index(current))
        self.list.blockSignals(False)


class SwatchEditor(QtWidgets.QWidget):
    """The shared color swatch offered by every picker."""

    def __init__(self, store: EditorStore,
                 parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.store = store
        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        self.buttons: List[ColorButton] = []
        for index, color in enumerate(store.swatch):
            button = ColorButton(color, self)
            button.setMinimumWidth(64)
            button.colorChanged.connect(
                lambda value, i=index: self.store.dispatch(SetSwatchColor(i, value)))
            layout.addWidget(button)
            self.buttons.append(button)

    def refresh(self) -> None:
        for button, color in zip(self.buttons, self.store.swatch):
            button.blockSignals(True)
            button.setColor(color)
            button.blockSignals(False)
