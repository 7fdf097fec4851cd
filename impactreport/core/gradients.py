"""Parsing and composition of CSS linear gradients."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple

DEFAULT_DEGREE = 180.0
MIN_DEGREE = 1.0
MAX_DEGREE = 360.0

DIRECTION_KEYWORDS = {
    "to top": 0.0,
    "to right": 90.0,
    "to bottom": 180.0,
    "to left": 270.0,
}

_GRADIENT_RE = re.compile(r"^\s*linear-gradient\s*\((?P<body>.*)\)\s*;?\s*$", re.I | re.S)
_DEGREE_RE = re.compile(r"^(?P<num>[-+]?(?:\d+\.?\d*|\.\d+))\s*deg$", re.I)
_HEX_RE = re.compile(r"^#(?P<hex>[0-9a-f]{3}|[0-9a-f]{6}|[0-9a-f]{8})$", re.I)
_RGB_RE = re.compile(
    r"^rgba?\(\s*(?P<r>[-+]?\d+(?:\.\d+)?)\s*,\s*(?P<g>[-+]?\d+(?:\.\d+)?)\s*,"
    r"\s*(?P<b>[-+]?\d+(?:\.\d+)?)\s*(?:,\s*(?P<a>[-+]?(?:\d+\.?\d*|\.\d+))\s*)?\)$",
    re.I,
)
_POSITION_RE = re.compile(r"\s+[-+]?(?:\d+\.?\d*|\.\d+)(?:%|px|em|rem)?$", re.I)
_RGBA_TAIL_RE = re.compile(r"rgba\([^,()]+,[^,()]+,[^,()]+,\s*([-+]?\d*\.?\d+)\s*\)", re.I)
_ANY_COLOR_RE = re.compile(r"#[0-9a-f]{3,8}\b|rgba?\(", re.I)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ColorStop:
    color_hex: str
    alpha: float = 1.0

    def __post_init__(self) -> None:
        match = _HEX_RE.match(self.color_hex.strip()) if isinstance(self.color_hex, str) else None
        raw = match.group("hex").lower() if match else "000000"
        if len(raw) == 3:
            raw = "".join(ch * 2 for ch in raw)
        object.__setattr__(self, "color_hex", f"#{raw[:6]}")

    @property
    def rgb(self) -> Tuple[int, int, int]:
        raw = self.color_hex.lstrip("#")
        return int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16)

    def with_alpha(self, alpha: float) -> "ColorStop":
        return replace(self, alpha=clamp(float(alpha), 0.0, 1.0))


BLACK = ColorStop("#000000", 1.0)


@dataclass(frozen=True)
class GradientSpec:
    degree: float
    stops: Tuple[ColorStop, ...]
    kind: str = "linear"

    def with_stop(self, index: int, stop: ColorStop) -> "GradientSpec":
        stops = list(self.stops)
        stops[index] = stop
        return replace(self, stops=tuple(stops))

    def with_degree(self, degree: float) -> "GradientSpec":
        return replace(self, degree=float(degree))

    def to_css(self, opacity: Optional[float] = None) -> str:
        return compose(self.degree, self.stops, opacity)


DEFAULT_STOPS: Tuple[ColorStop, ColorStop] = (
    ColorStop("#5038a0", 1.0),
    ColorStop("#121242", 1.0),
)
DEFAULT_GRADIENT = GradientSpec(DEFAULT_DEGREE, DEFAULT_STOPS)


@dataclass(frozen=True)
class LegacyTwoStopView:
    """Projection of the first two stops kept for older field names."""

    degree: float
    color1: str
    color2: str
    opacity: float


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------


def normalize_color(value: object) -> Optional[ColorStop]:
    """Return the stop described by a hex/rgb/rgba string, or None."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    match = _HEX_RE.match(text)
    if match:
        raw = match.group("hex").lower()
        if len(raw) == 3:
            raw = "".join(ch * 2 for ch in raw)
        alpha = 1.0
        if len(raw) == 8:
            alpha = int(raw[6:8], 16) / 255.0
            raw = raw[:6]
        return ColorStop(f"#{raw}", alpha)
    match = _RGB_RE.match(text)
    if match:
        if text[:4].lower() == "rgba" and match.group("a") is None:
            return None
        channels = [
            int(clamp(round(float(match.group(name))), 0, 255))
            for name in ("r", "g", "b")
        ]
        alpha = 1.0
        if match.group("a") is not None:
            alpha = clamp(float(match.group("a")), 0.0, 1.0)
        return ColorStop("#{:02x}{:02x}{:02x}".format(*channels), alpha)
    return None


def to_hex(value: object) -> str:
    stop = normalize_color(value)
    return stop.color_hex if stop else BLACK.color_hex


def relative_luminance(value: str) -> float:
    r, g, b = (c / 255.0 for c in ColorStop(to_hex(value)).rgb)

    def linear(c: float) -> float:
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    return 0.2126 * linear(r) + 0.7152 * linear(g) + 0.0722 * linear(b)


def readable_text_color(background: str) -> str:
    return "#0f1118" if relative_luminance(background) > 0.4 else "#ffffff"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _split_args(body: str) -> List[str]:
    """Split on commas that are not nested inside parentheses."""
    args: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in body:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    args.append("".join(current).strip())
    return args


def _parse_angle(token: str) -> Optional[float]:
    match = _DEGREE_RE.match(token)
    if match:
        value = float(match.group("num"))
        return value if math.isfinite(value) else None
    keyword = " ".join(token.lower().split())
    return DIRECTION_KEYWORDS.get(keyword)


def _parse_stop(token: str) -> Optional[ColorStop]:
    color = _POSITION_RE.sub("", token.strip()).strip()
    return normalize_color(color)


def parse(css: Optional[str]) -> GradientSpec:
    """Parse a ``linear-gradient(...)`` string. Never raises.

    Unrecognized stops become opaque black, missing stops are filled from
    the default gradient, and anything that is not a linear gradient at all
    yields :data:`DEFAULT_GRADIENT`.
    """
    if not isinstance(css, str) or not css.strip():
        return DEFAULT_GRADIENT
    match = _GRADIENT_RE.match(css)
    if not match:
        return DEFAULT_GRADIENT
    args = [arg for arg in _split_args(match.group("body")) if arg]
    if not args:
        return DEFAULT_GRADIENT

    degree = DEFAULT_DEGREE
    first = args[0]
    angle = _parse_angle(first)
    if angle is not None:
        degree = angle
        args = args[1:]
    elif _parse_stop(first) is None and (
        first.lower().startswith("to ") or first.lower().endswith(("deg", "turn", "rad"))
    ):
        # a direction we cannot express; keep the default angle
        args = args[1:]

    parsed = [_parse_stop(arg) for arg in args]
    if not any(parsed):
        return DEFAULT_GRADIENT
    stops = [stop if stop is not None else BLACK for stop in parsed]
    while len(stops) < len(DEFAULT_STOPS):
        stops.append(DEFAULT_STOPS[len(stops)])
    return GradientSpec(degree, tuple(stops))


def extract_alpha(css: Optional[str], fallback: Optional[float] = None) -> float:
    """Return the alpha of the last ``rgba(...)`` found in ``css``.

    Without any ``rgba`` the result is 1, except when no color is present
    at all, in which case ``fallback`` is returned when given.
    """
    text = css if isinstance(css, str) else ""
    matches = _RGBA_TAIL_RE.findall(text)
    if matches:
        try:
            return clamp(float(matches[-1]), 0.0, 1.0)
        except ValueError:
            return 1.0
    if not _ANY_COLOR_RE.search(text) and fallback is not None:
        return clamp(float(fallback), 0.0, 1.0)
    return 1.0


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def _format_number(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _format_degree(value: float) -> str:
    # shortest repr that reads back to the same float
    return str(int(value)) if value.is_integer() else repr(value)


def _format_stop(stop: ColorStop, alpha: float) -> str:
    if alpha >= 1.0:
        return stop.color_hex
    r, g, b = stop.rgb
    return f"rgba({r}, {g}, {b}, {_format_number(alpha)})"


def compose(
    degree: float,
    stops: Sequence[ColorStop],
    opacity: Optional[float] = None,
) -> str:
    """Serialize a gradient; the degree is clamped to ``[1, 360]``."""
    try:
        deg = float(degree)
    except (TypeError, ValueError):
        deg = DEFAULT_DEGREE
    if not math.isfinite(deg):
        deg = DEFAULT_DEGREE
    deg = clamp(deg, MIN_DEGREE, MAX_DEGREE)

    if not stops:
        stops = DEFAULT_STOPS
    override: Optional[float] = None
    if opacity is not None:
        try:
            override = clamp(float(opacity), 0.0, 1.0)
        except (TypeError, ValueError):
            override = None
        if override is not None and not math.isfinite(override):
            override = 1.0

    parts = []
    for stop in stops:
        alpha = override if override is not None else clamp(stop.alpha, 0.0, 1.0)
        parts.append(_format_stop(stop, alpha))
    return f"linear-gradient({_format_degree(deg)}deg, {', '.join(parts)})"


def compose_spec(spec: GradientSpec, opacity: Optional[float] = None) -> str:
    return compose(spec.degree, spec.stops, opacity)


def equivalent(a: GradientSpec, b: GradientSpec, places: int = 4) -> bool:
    """True when both specs render the same gradient after clamping."""
    if clamp(a.degree, MIN_DEGREE, MAX_DEGREE) != clamp(b.degree, MIN_DEGREE, MAX_DEGREE):
        return False
    if len(a.stops) != len(b.stops):
        return False
    return all(
        x.color_hex == y.color_hex and round(x.alpha, places) == round(y.alpha, places)
        for x, y in zip(a.stops, b.stops)
    )


# ---------------------------------------------------------------------------
# Legacy two-stop fields
# ---------------------------------------------------------------------------


@lru_cache(maxsize=256)
def legacy_view(css: Optional[str]) -> LegacyTwoStopView:
    spec = parse(css)
    return LegacyTwoStopView(
        degree=spec.degree,
        color1=spec.stops[0].color_hex,
        color2=spec.stops[1].color_hex,
        opacity=extract_alpha(css),
    )


def apply_legacy_edit(
    css: Optional[str],
    degree: Optional[float] = None,
    color1: Optional[str] = None,
    color2: Optional[str] = None,
    opacity: Optional[float] = None,
) -> str:
    """Write legacy values through to the authoritative gradient string."""
    spec = parse(css)
    if degree is not None:
        spec = spec.with_degree(degree)
    for index, value in ((0, color1), (1, color2)):
        if value is None:
            continue
        stop = normalize_color(value) or BLACK
        spec = spec.with_stop(index, stop.with_alpha(spec.stops[index].alpha))
    return compose_spec(spec, opacity)


def compose_from_legacy(
    degree: object,
    color1: object,
    color2: object,
    opacity: object = None,
) -> str:
    """Build a gradient string from an old document's separate fields."""
    try:
        deg = float(degree)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        deg = DEFAULT_DEGREE
    first = normalize_color(color1) or DEFAULT_STOPS[0]
    second = normalize_color(color2) or DEFAULT_STOPS[1]
    alpha: Optional[float]
    try:
        alpha = float(opacity) if opacity is not None else None  # type: ignore[arg-type]
    except (TypeError, ValueError):
        alpha = None
    return compose(deg, (first, second), alpha)


def stops_from(colors: Iterable[str]) -> Tuple[ColorStop, ...]:
    return tuple(normalize_color(c) or BLACK for c in colors)
