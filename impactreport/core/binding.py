"""Bindings that let pickers edit one part of a gradient field."""

from __future__ import annotations

from typing import Optional

from . import gradients
from .gradients import ColorStop, GradientSpec, LegacyTwoStopView
from .store import EditorStore, SetField

MIN_STOPS = 2


class GradientFieldBinding:
    """Read/write access to one gradient field of the store.

    Every write re-reads the field's current string, so edits made through
    other bindings since this one was created are never lost.
    """

    def __init__(self, store: EditorStore, section_id: str, key: str) -> None:
        self.store = store
        self.section_id = section_id
        self.key = key

    def css(self) -> str:
        return self.store.value(self.section_id, self.key) or ""

    def spec(self) -> GradientSpec:
        return gradients.parse(self.css())

    def legacy(self) -> LegacyTwoStopView:
        return gradients.legacy_view(self.css())

    def stop(self, index: int) -> "ColorStopBinding":
        return ColorStopBinding(self.store, self.section_id, self.key, index)

    def write(self, spec: GradientSpec, opacity: Optional[float] = None) -> bool:
        css = gradients.compose_spec(spec, opacity)
        return self.store.dispatch(SetField(self.section_id, self.key, css))

    def set_degree(self, degree: float) -> bool:
        return self.write(self.spec().with_degree(degree))

    def set_opacity(self, opacity: float) -> bool:
        return self.write(self.spec(), opacity)

    def set_legacy(
        self,
        degree: Optional[float] = None,
        color1: Optional[str] = None,
        color2: Optional[str] = None,
        opacity: Optional[float] = None,
    ) -> bool:
        css = gradients.apply_legacy_edit(self.css(), degree, color1, color2, opacity)
        return self.store.dispatch(SetField(self.section_id, self.key, css))

    def add_stop(self, color: str = "#ffffff") -> bool:
        spec = self.spec()
        stop = gradients.normalize_color(color) or gradients.BLACK
        return self.write(GradientSpec(spec.degree, spec.stops + (stop,)))

    def remove_stop(self, index: int) -> bool:
        spec = self.spec()
        if len(spec.stops) <= MIN_STOPS:
            return False
        stops = list(spec.stops)
        del stops[index]
        return self.write(GradientSpec(spec.degree, tuple(stops)))


class ColorStopBinding:
    """What a color picker is opened against: a field and a stop index."""

    def __init__(self, store: EditorStore, section_id: str, key: str, index: int) -> None:
        self.store = store
        self.section_id = section_id
        self.key = key
        self.index = index

    def current(self) -> ColorStop:
        spec = gradients.parse(self.store.value(self.section_id, self.key))
        return spec.stops[self.index]

    def commit(self, color: str, alpha: Optional[float] = None) -> bool:
        spec = gradients.parse(self.store.value(self.section_id, self.key))
        if not 0 <= self.index < len(spec.stops):
            raise IndexError(
                f"{self.section_id}.{self.key} has no stop {self.index}")
        previous = spec.stops[self.index]
        picked = gradients.normalize_color(color)
        if picked is None:
            picked = gradients.BLACK.with_alpha(previous.alpha)
        elif alpha is None and picked.alpha >= 1.0:
            picked = picked.with_alpha(previous.alpha)
        if alpha is not None:
            picked = picked.with_alpha(alpha)
        css = gradients.compose_spec(spec.with_stop(self.index, picked))
        return self.store.dispatch(SetField(self.section_id, self.key, css))

    def set_alpha(self, alpha: float) -> bool:
        return self.commit(self.current().color_hex, alpha)
