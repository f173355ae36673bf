"""Confirmation summary and rendered page text.

Builds the review summary shown on a confirmation page from the pages the
user actually visited, and renders ``{{token}}`` text (text/html component
content, helper text, thank-you copy) through the template engine.
"""

from __future__ import annotations

from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Sequence
import logging

from form_runtime.logic.component_kinds import kind_for
from form_runtime.logic.template_engine import get_template_engine, render_template
from form_runtime.logic.visibility_rules import is_component_visible
from form_runtime.models.form_definition import Component, FormDefinition, Page

logger = logging.getLogger(__name__)

_TEXT_PROPS = ("content", "helperText", "text")


def _visible_tree(
    components: Sequence[Component],
    values: Mapping[str, Any],
    hidden: AbstractSet[str] = frozenset(),
) -> List[Component]:
    out: List[Component] = []
    for component in components or []:
        if component.id in hidden or not is_component_visible(component, values):
            continue
        out.append(component)
        if kind_for(component).container:
            out.extend(_visible_tree(component.children or [], values, hidden))
    return out


def render_page_text(
    page: Page,
    values: Mapping[str, Any],
    calculated: Optional[Mapping[str, Any]] = None,
    hidden: AbstractSet[str] = frozenset(),
) -> Dict[str, Dict[str, str]]:
    """Rendered templated props per component id, for visible components only."""
    rendered: Dict[str, Dict[str, str]] = {}
    for component in _visible_tree(page.components, values, hidden):
        props = component.props or {}
        texts = {
            name: render_template(props[name], values, calculated)
            for name in _TEXT_PROPS
            if isinstance(props.get(name), str)
        }
        if component.label and "{{" in component.label:
            texts["label"] = render_template(component.label, values, calculated)
        if texts:
            rendered[component.id] = texts
    return rendered


def build_summary(
    definition: FormDefinition,
    history: Sequence[str],
    values: Mapping[str, Any],
    hidden: AbstractSet[str] = frozenset(),
) -> List[Dict[str, Any]]:
    """Answered fields grouped by visited page, in visit order.

    Confirmation pages are left out; a page visited twice appears
    once. Fields hidden by their conditions, or listed in ``hidden`` by a
    dynamic visibility expression, are omitted.
    """
    engine = get_template_engine()
    sections: List[Dict[str, Any]] = []
    seen = set()
    for page_id in history:
        if page_id in seen:
            continue
        seen.add(page_id)
        page = definition.page_by_id(page_id)
        if page is None or page.is_confirmation_page:
            continue
        fields = []
        for component in _visible_tree(page.components, values, hidden):
            if not kind_for(component).collects_value:
                continue
            value = values.get(component.id)
            fields.append(
                {
                    "fieldId": component.id,
                    "label": component.label or component.id,
                    "value": value,
                    "display": engine.display(value),
                }
            )
        if fields:
            sections.append({"pageId": page.id, "title": page.title, "fields": fields})
    return sections


def render_thank_you(definition: FormDefinition, values: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    thank_you = definition.app.thank_you_page
    if thank_you is None:
        return None
    return {
        "title": render_template(thank_you.title, values) if thank_you.title else None,
        "message": render_template(thank_you.message, values) if thank_you.message else None,
        "showRestartButton": thank_you.show_restart_button,
    }


__all__ = ["render_page_text", "build_summary", "render_thank_you"]
