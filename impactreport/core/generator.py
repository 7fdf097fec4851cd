"""Rendering of the public impact report page."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import gradients
from .models import EditForm, PendingFile, schema_for

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _env(templates_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    env.filters["gradient"] = css_gradient
    env.filters["text_on"] = text_color_on
    return env


def css_gradient(value: Any) -> str:
    """Normalized gradient for CSS output; bad stored values fall back."""
    return gradients.compose_spec(gradients.parse(value))


def text_color_on(value: Any) -> str:
    spec = gradients.parse(value)
    return gradients.readable_text_color(spec.stops[0].color_hex)


def _image_src(value: Any) -> Optional[str]:
    if isinstance(value, PendingFile):
        return Path(value.path).resolve().as_uri()
    return value or None


def _pairs(items: List[str]) -> List[Dict[str, str]]:
    pairs = []
    for item in items:
        head, sep, tail = item.partition(":")
        if sep and tail.strip().startswith("//"):
            # bare URL without a label
            head, sep, tail = item.partition(": ")
        pairs.append({"label": head.strip(), "value": tail.strip() if sep else ""})
    return pairs


def page_context(form: EditForm, swatch: List[str]) -> Dict[str, Any]:
    sections = []
    for section_id in form.section_order:
        values = form.sections.get(section_id)
        if not values or not values.get("enabled", True):
            continue
        schema = schema_for(section_id)
        data = dict(values)
        for spec in schema.fields:
            if spec.kind == "image":
                data[spec.key] = _image_src(values.get(spec.key))
            elif spec.kind == "list":
                data[spec.key + "_pairs"] = _pairs(values.get(spec.key) or [])
        sections.append({"id": section_id, "title": schema.title, "data": data})
    return {"sections": sections, "swatch": list(swatch)}


def render_page(
    form: EditForm,
    swatch: List[str],
    templates_dir: Path = TEMPLATES_DIR,
) -> str:
    tpl = _env(templates_dir).get_template("impact.html.j2")
    return tpl.render(**page_context(form, swatch))


def render_site(
    form: EditForm,
    swatch: List[str],
    output_dir: str | Path,
    templates_dir: Path = TEMPLATES_DIR,
) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / "index.html"
    target.write_text(render_page(form, swatch, templates_dir), encoding="utf-8")
    logger.info("exported impact report to %s", target)
    return target
