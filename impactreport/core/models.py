"""Section schemas and the editable form model."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import gradients

FIELD_KINDS = ("text", "multiline", "color", "gradient", "image", "list", "bool")

BRAND_SWATCH = [
    "#1946f5",  # blue
    "#68369a",  # purple
    "#1bb5a6",  # teal
    "#ffd93d",  # yellow
    "#e5469b",  # pink
    "#2fbf71",  # green
]
SWATCH_SIZE = len(BRAND_SWATCH)


@dataclass(frozen=True)
class LegacyKeys:
    """Old separate fields that mirror a gradient string."""

    degree: Optional[str] = "degree"
    color1: str = "color1"
    color2: Optional[str] = "color2"
    opacity: Optional[str] = "gradientOpacity"


@dataclass(frozen=True)
class FieldSpec:
    key: str
    kind: str
    label: str
    default: Any = ""
    legacy: Optional[LegacyKeys] = None

    def initial(self) -> Any:
        return copy.deepcopy(self.default)


@dataclass(frozen=True)
class SectionSchema:
    section_id: str
    title: str
    fields: Tuple[FieldSpec, ...]

    def field(self, key: str) -> FieldSpec:
        for spec in self.fields:
            if spec.key == key:
                return spec
        raise KeyError(f"{self.section_id} has no field {key!r}")

    def keys(self) -> List[str]:
        return [spec.key for spec in self.fields]

    def defaults(self) -> Dict[str, Any]:
        values = {spec.key: spec.initial() for spec in self.fields}
        values["enabled"] = True
        return values


@dataclass(frozen=True)
class PendingFile:
    """A locally selected file that still has to be uploaded."""

    path: str
    content_type: str = ""

    @property
    def name(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


def _gradient_default(*colors: str, degree: int = 180) -> str:
    return gradients.compose(degree, gradients.stops_from(colors))


def _background(default: str, legacy: Optional[LegacyKeys] = None) -> FieldSpec:
    return FieldSpec("backgroundColor", "gradient", "Background", default, legacy=legacy)


# Flex layouts keep a solid ``sectionBgColor`` next to the gradient; older
# documents only have the solid color.
FLEX_BACKGROUND_LEGACY = LegacyKeys(
    degree=None, color1="sectionBgColor", color2=None, opacity=None)


def _flex_background(*colors: str, degree: int = 180) -> Tuple[FieldSpec, ...]:
    return (
        FieldSpec("animationsEnabled", "bool", "Animations", True),
        FieldSpec(
            "sectionBgGradient",
            "gradient",
            "Background",
            _gradient_default(*colors, degree=degree),
            legacy=FLEX_BACKGROUND_LEGACY,
        ),
        FieldSpec("sectionBgImage", "image", "Background image", None),
        FieldSpec("primaryColor", "color", "Accent color", "#1946f5"),
        FieldSpec("textColor", "color", "Text color", "#ffffff"),
        FieldSpec("ariaLabel", "text", "Accessible label"),
    )


SECTION_SCHEMAS: Dict[str, SectionSchema] = {
    "hero": SectionSchema(
        "hero",
        "Hero",
        (
            FieldSpec("title", "text", "Title"),
            FieldSpec("subtitle", "text", "Subtitle"),
            FieldSpec("year", "text", "Year"),
            FieldSpec("tagline", "text", "Tagline"),
            FieldSpec("bubbles", "list", "Bubbles", []),
            FieldSpec("titleColor", "color", "Title color", "#ffffff"),
            FieldSpec("subtitleColor", "color", "Subtitle color", "#ffffff"),
            FieldSpec("yearColor", "color", "Year color", "#ffffff"),
            FieldSpec("taglineColor", "color", "Tagline color", "#ffffff"),
            _background(_gradient_default("#5038a0", "#121242"), LegacyKeys()),
            FieldSpec("backgroundImage", "image", "Background image", None),
            FieldSpec("backgroundImageGrayscale", "bool", "Grayscale image", False),
            FieldSpec("primaryCtaLabel", "text", "Primary button", "Watch Our Story"),
            FieldSpec("primaryCtaHref", "text", "Primary link"),
            FieldSpec("secondaryCtaLabel", "text", "Secondary button"),
            FieldSpec("secondaryCtaHref", "text", "Secondary link"),
            FieldSpec("ariaLabel", "text", "Accessible label"),
        ),
    ),
    "mission": SectionSchema(
        "mission",
        "Mission",
        (
            FieldSpec("title", "text", "Title", "Our Mission"),
            FieldSpec(
                "titleGradient",
                "gradient",
                "Title gradient",
                _gradient_default("#7e9aff", "#bfb1ff", degree=90),
                legacy=LegacyKeys(
                    "titleGradientDegree",
                    "titleGradientColor1",
                    "titleGradientColor2",
                    "titleGradientOpacity",
                ),
            ),
            FieldSpec(
                "titleUnderlineGradient",
                "gradient",
                "Underline gradient",
                _gradient_default("#5fa8d3", "#7b7fd1", degree=90),
                legacy=LegacyKeys(
                    "titleUnderlineGradientDegree",
                    "titleUnderlineGradientColor1",
                    "titleUnderlineGradientColor2",
                    None,
                ),
            ),
            FieldSpec("badgeLabel", "text", "Badge"),
            FieldSpec("statementTitle", "text", "Statement title"),
            FieldSpec("statementText", "multiline", "Statement"),
            FieldSpec("statementTextColor", "color", "Statement color", "#ffffff"),
            FieldSpec("statementMeta", "text", "Statement meta"),
            FieldSpec(
                "ticketStripeGradient",
                "gradient",
                "Ticket stripe",
                _gradient_default("#e5469b", "#ffd93d", degree=90),
            ),
            FieldSpec("statsTitle", "text", "Stats title"),
            FieldSpec("stats", "list", "Statistics (number: label)", []),
            _background(_gradient_default("#5038a0", "#121242"), LegacyKeys()),
            FieldSpec("backgroundImage", "image", "Background image", None),
        ),
    ),
    "population": SectionSchema(
        "population",
        "Population",
        (
            FieldSpec("title", "text", "Title", "Who We Serve"),
            FieldSpec("stats", "list", "Statistics (number: label)", []),
            FieldSpec("textColor", "color", "Text color", "#ffffff"),
            _background(_gradient_default("#1946f5", "#68369a", degree=135)),
        ),
    ),
    "financial": SectionSchema(
        "financial",
        "Financial",
        (
            FieldSpec("title", "text", "Title", "Financial Analysis"),
            FieldSpec("items", "list", "Breakdown (label: amount)", []),
            FieldSpec("textColor", "color", "Text color", "#ffffff"),
            _background(_gradient_default("#121242", "#121242")),
        ),
    ),
    "method": SectionSchema(
        "method",
        "Our Method",
        (
            FieldSpec("title", "text", "Title", "Our Method"),
            FieldSpec("steps", "list", "Steps", []),
            FieldSpec("textColor", "color", "Text color", "#ffffff"),
            _background(_gradient_default("#68369a", "#121242", degree=135)),
        ),
    ),
    "curriculum": SectionSchema(
        "curriculum",
        "Curriculum",
        (
            FieldSpec("title", "text", "Title", "Curriculum"),
            FieldSpec("items", "list", "Courses", []),
            FieldSpec("image", "image", "Image", None),
            _background(_gradient_default("#121242", "#5038a0")),
        ),
    ),
    "impactSection": SectionSchema(
        "impactSection",
        "Impact",
        (
            FieldSpec("title", "text", "Title", "Our Impact"),
            FieldSpec("stats", "list", "Statistics (number: label)", []),
            _background(_gradient_default("#1946f5", "#68369a", degree=135)),
        ),
    ),
    "hearOurImpact": SectionSchema(
        "hearOurImpact",
        "Hear Our Impact",
        (
            FieldSpec("title", "text", "Title", "Hear Our Impact"),
            FieldSpec("embeds", "list", "Audio links", []),
            _background(_gradient_default("#121242", "#000000", degree=135)),
        ),
    ),
    "testimonials": SectionSchema(
        "testimonials",
        "Testimonials",
        (
            FieldSpec("title", "text", "Title", "Testimonials"),
            FieldSpec("quote", "multiline", "Quote"),
            FieldSpec("author", "text", "Author"),
            FieldSpec("role", "text", "Role"),
            FieldSpec("image", "image", "Portrait", None),
            FieldSpec("quoteColor", "color", "Quote color", "#ffffff"),
            _background(_gradient_default("#68369a", "#121242", degree=135)),
        ),
    ),
    "nationalImpact": SectionSchema(
        "nationalImpact",
        "National Impact",
        (
            FieldSpec("title", "text", "Title", "Our National Impact"),
            FieldSpec("titleColor", "color", "Title color", "#ffffff"),
            FieldSpec("sectionBgColor", "color", "Background color", "#121242"),
            FieldSpec("overlayButtonBgColor", "color", "Button color", "#1946f5"),
            FieldSpec("regions", "list", "Regions", []),
        ),
    ),
    "flexA": SectionSchema(
        "flexA",
        "Flex A",
        _flex_background("#5038a0", "#121242") + (
            FieldSpec("headline", "text", "Headline"),
            FieldSpec("headlineColor", "color", "Headline color", "#ffffff"),
            FieldSpec("heroImage", "image", "Image", None),
            FieldSpec("paragraphs", "list", "Paragraphs", []),
            FieldSpec("quote", "multiline", "Quote"),
        ),
    ),
    "flexB": SectionSchema(
        "flexB",
        "Flex B",
        _flex_background("#121242", "#68369a", degree=135) + (
            FieldSpec("headline", "text", "Headline"),
            FieldSpec("leadParagraph", "multiline", "Lead paragraph"),
            FieldSpec("bodyParagraphs", "list", "Body paragraphs", []),
            FieldSpec("pullQuote", "multiline", "Pull quote"),
            FieldSpec("keyTakeaway", "text", "Key takeaway"),
        ),
    ),
    "flexC": SectionSchema(
        "flexC",
        "Flex C",
        _flex_background("#000000", "#121242") + (
            FieldSpec("title", "text", "Title"),
            FieldSpec("titleColor", "color", "Title color", "#ffffff"),
            FieldSpec("subtitle", "text", "Subtitle"),
            FieldSpec("subtitleColor", "color", "Subtitle color", "#ffffff"),
            FieldSpec("poster", "image", "Poster", None),
            FieldSpec("directorsNotes", "multiline", "Director's notes"),
            FieldSpec("credits", "list", "Credits (role: name)", []),
        ),
    ),
    "impactLevels": SectionSchema(
        "impactLevels",
        "Impact Levels",
        (
            FieldSpec("title", "text", "Title", "Levels of Impact"),
            FieldSpec("levels", "list", "Levels (amount: description)", []),
            FieldSpec("ctaLabel", "text", "Button", "Give Now"),
            FieldSpec("ctaHref", "text", "Button link"),
            FieldSpec(
                "sectionBgGradient",
                "gradient",
                "Background",
                _gradient_default("#5038a0", "#121242"),
            ),
        ),
    ),
    "partners": SectionSchema(
        "partners",
        "Partners",
        (
            FieldSpec("title", "text", "Title", "Our Partners"),
            FieldSpec("partners", "list", "Partners", []),
            FieldSpec("textColor", "color", "Text color", "#ffffff"),
            _background(_gradient_default("#121242", "#121242")),
        ),
    ),
    "footer": SectionSchema(
        "footer",
        "Footer",
        (
            FieldSpec("copyrightText", "text", "Copyright"),
            FieldSpec("links", "list", "Links (label: url)", []),
            FieldSpec("textColor", "color", "Text color", "#ffffff"),
            _background(_gradient_default("#121242", "#000000", degree=135)),
        ),
    ),
}

DEFAULT_SECTION_ORDER: List[str] = list(SECTION_SCHEMAS)


def url_slug(section_id: str) -> str:
    """``flexA`` -> ``flex-a``; the path segment a section is served under."""
    return re.sub(r"(?<!^)([A-Z])", r"-\1", section_id).lower()


def schema_for(section_id: str) -> SectionSchema:
    try:
        return SECTION_SCHEMAS[section_id]
    except KeyError:
        raise KeyError(f"Unknown section {section_id!r}") from None


@dataclass
class EditForm:
    """The whole multi-section form being edited."""

    sections: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    section_order: List[str] = field(
        default_factory=lambda: list(DEFAULT_SECTION_ORDER))

    @classmethod
    def defaults(cls) -> "EditForm":
        return cls(
            sections={sid: schema.defaults()
                      for sid, schema in SECTION_SCHEMAS.items()},
            section_order=list(DEFAULT_SECTION_ORDER),
        )

    def snapshot(self) -> "EditForm":
        return copy.deepcopy(self)

    def value(self, section_id: str, key: str) -> Any:
        return self.sections[section_id][key]

    def pending_files(self) -> List[Tuple[str, str, PendingFile]]:
        found = []
        for sid in self.section_order:
            for key, value in self.sections.get(sid, {}).items():
                if isinstance(value, PendingFile):
                    found.append((sid, key, value))
        return found


# ---------------------------------------------------------------------------
# Stored documents <-> form fields
# ---------------------------------------------------------------------------


def _coerce_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if str(v).strip()]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def section_from_content(schema: SectionSchema, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored document into form values, keeping defaults for gaps."""
    values = schema.defaults()
    for flag in ("enabled", "visible"):
        if isinstance(raw.get(flag), bool):
            values["enabled"] = raw[flag]
            break
    for spec in schema.fields:
        stored = raw.get(spec.key)
        if spec.kind == "gradient":
            if isinstance(stored, str) and stored.strip():
                # kept verbatim; legacy keys are only a migration source
                values[spec.key] = stored
            elif spec.legacy and spec.legacy.color1 in raw:
                legacy = spec.legacy
                color1 = raw.get(legacy.color1)
                # a lone solid color becomes a flat two-stop gradient
                values[spec.key] = gradients.compose_from_legacy(
                    raw.get(legacy.degree) if legacy.degree else None,
                    color1,
                    raw.get(legacy.color2) if legacy.color2 else color1,
                    raw.get(legacy.opacity) if legacy.opacity else None,
                )
        elif spec.kind == "list":
            if stored is not None:
                values[spec.key] = _coerce_list(stored)
        elif spec.kind == "bool":
            if stored is not None:
                values[spec.key] = bool(stored)
        elif spec.kind == "image":
            values[spec.key] = str(stored) if isinstance(stored, str) and stored else None
        elif spec.kind == "color":
            if isinstance(stored, str) and stored.strip():
                values[spec.key] = stored.strip()
        elif stored is not None:
            values[spec.key] = str(stored)
    return values


def section_to_payload(schema: SectionSchema, values: Dict[str, Any]) -> Dict[str, Any]:
    """Build the save payload of one section.

    Gradient strings are authoritative; legacy keys are derived from them so
    older readers of the document keep working.
    """
    enabled = bool(values.get("enabled", True))
    payload: Dict[str, Any] = {"enabled": enabled, "visible": enabled}
    for spec in schema.fields:
        value = values.get(spec.key, spec.initial())
        if spec.kind == "gradient":
            css = value if isinstance(value, str) and value.strip() else spec.default
            payload[spec.key] = css
            if spec.legacy:
                view = gradients.legacy_view(css)
                if spec.legacy.degree:
                    payload[spec.legacy.degree] = view.degree
                payload[spec.legacy.color1] = view.color1
                if spec.legacy.color2:
                    payload[spec.legacy.color2] = view.color2
                if spec.legacy.opacity:
                    payload[spec.legacy.opacity] = view.opacity
        elif spec.kind == "image":
            if isinstance(value, PendingFile):
                raise ValueError(
                    f"{schema.section_id}.{spec.key} has an unresolved upload")
            payload[spec.key] = value or None
        elif spec.kind == "list":
            payload[spec.key] = _coerce_list(value)
        elif spec.kind == "bool":
            payload[spec.key] = bool(value)
        else:
            payload[spec.key] = value if value is not None else ""
    return payload


def normalize_swatch(colors: Optional[List[Any]]) -> List[str]:
    incoming = [c for c in (colors or []) if isinstance(c, str) and c.strip()]
    if not incoming:
        incoming = list(BRAND_SWATCH)
    return [
        incoming[i] if i < len(incoming) else BRAND_SWATCH[i % len(BRAND_SWATCH)]
        for i in range(SWATCH_SIZE)
    ]


def normalize_section_order(order: Optional[List[Any]]) -> List[str]:
    seen: List[str] = []
    for sid in order or []:
        if isinstance(sid, str) and sid in SECTION_SCHEMAS and sid not in seen:
            seen.append(sid)
    for sid in DEFAULT_SECTION_ORDER:
        if sid not in seen:
            seen.append(sid)
    return seen
