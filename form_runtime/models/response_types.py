"""Pydantic models for HTTP request and response bodies."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from form_runtime.models.expression import ExpressionContext, TemplateContext
from form_runtime.models.navigation import LogicalPageEntry, PageGraphDiagnostics


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormLoaded(_Body):
    form_id: str
    title: str
    page_count: int
    logical_order: List[LogicalPageEntry]
    diagnostics: PageGraphDiagnostics


class LogicalOrderView(_Body):
    form_id: str
    logical_order: List[LogicalPageEntry]


class SetValueRequest(_Body):
    value: Any = None


class AddItemRequest(_Body):
    values: Optional[Dict[str, Any]] = None


class ArrayItems(_Body):
    array_id: str
    items: List[Dict[str, Any]]
    item_paths: List[str]


class EvaluateExpressionRequest(_Body):
    expression: str
    context: ExpressionContext = Field(default_factory=ExpressionContext)


class ValidateExpressionRequest(_Body):
    expression: str


class ExpressionValidity(_Body):
    valid: bool
    error: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)


class EvaluationView(_Body):
    value: Any = None
    error: Optional[str] = None
    success: bool
    dependencies: List[str] = Field(default_factory=list)


class RenderTemplateRequest(TemplateContext):
    template: str


class RenderedTemplate(_Body):
    rendered: str
    tokens: List[str]


class FlushResult(_Body):
    evaluated: int
    session: Dict[str, Any]


class Submissions(_Body):
    submissions: List[Dict[str, Any]]


class Events(_Body):
    events: List[Dict[str, Any]]


__all__ = [
    "FormLoaded",
    "LogicalOrderView",
    "SetValueRequest",
    "AddItemRequest",
    "ArrayItems",
    "EvaluateExpressionRequest",
    "ValidateExpressionRequest",
    "ExpressionValidity",
    "EvaluationView",
    "RenderTemplateRequest",
    "RenderedTemplate",
    "FlushResult",
    "Submissions",
    "Events",
]
