"""Small builders for form definition documents used across functional tests."""

from __future__ import annotations

from typing import Any, Dict, List


class FakeClock:
    """Manually advanced millisecond clock for scheduler-driven tests."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


def page(page_id: str, components: List[Dict[str, Any]] | None = None, **extra: Any) -> Dict[str, Any]:
    return {"id": page_id, "title": page_id.upper(), "route": f"/{page_id}", "components": components or [], **extra}


def field(field_id: str, kind: str = "input", **extra: Any) -> Dict[str, Any]:
    return {"id": field_id, "type": kind, "label": extra.pop("label", field_id), **extra}


def form(*pages: Dict[str, Any], **app: Any) -> Dict[str, Any]:
    return {"app": {"title": app.pop("title", "Test form"), "pages": list(pages), **app}}


def definition(*pages: Dict[str, Any], **app: Any):
    from form_runtime.models.form_definition import FormDefinition

    return FormDefinition.model_validate(form(*pages, **app))
