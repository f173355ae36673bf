"""Pydantic models for form definition documents.

A form definition is JSON produced externally (generation, manual editing or
import) with camelCase keys. Models expose snake_case attributes through an
alias generator and keep unknown keys so presentational props round-trip.
Instances are frozen: a definition is replaced wholesale, never patched.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from form_runtime.models.component_type import ComponentType, ExpressionMode


class _Document(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )


class Condition(_Document):
    field: str
    operator: str = "=="
    value: Any = None


class Branch(_Document):
    condition: Union[Condition, List[Condition]]
    next_page: str

    def conditions(self) -> List[Condition]:
        if isinstance(self.condition, list):
            return list(self.condition)
        return [self.condition]


class ValidationRules(_Document):
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    min_date: Optional[str] = None
    max_date: Optional[str] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    error_messages: Dict[str, str] = Field(default_factory=dict)


class ExpressionConfig(_Document):
    expression: str
    mode: ExpressionMode = ExpressionMode.VALUE
    dependencies: Optional[List[str]] = None
    evaluate_on_change: bool = True
    # None means "use the configured default"
    debounce_ms: Optional[int] = Field(default=None, ge=0)
    error_message: Optional[str] = None
    default_value: Any = None


class Component(_Document):
    id: str
    type: str
    label: Optional[str] = None
    props: Dict[str, Any] = Field(default_factory=dict)
    validation: Optional[ValidationRules] = None
    visibility_conditions: Optional[List[Condition]] = None
    children: Optional[List["Component"]] = None
    array_items: Optional[List["ArrayItemTemplate"]] = None
    expression: Optional[ExpressionConfig] = None
    options: Optional[List[Any]] = None
    default_value: Any = None

    @property
    def kind(self) -> Optional[ComponentType]:
        return ComponentType.parse(self.type)

    def expression_config(self) -> Optional[ExpressionConfig]:
        """Return the expression attached to the component or nested under props."""
        if self.expression is not None:
            return self.expression
        raw = (self.props or {}).get("expression")
        if isinstance(raw, dict) and raw.get("expression"):
            return ExpressionConfig.model_validate(raw)
        return None

    def rules(self) -> ValidationRules:
        return self.validation or _EMPTY_RULES


class ArrayItemTemplate(_Document):
    id: str
    components: List[Component] = Field(default_factory=list)


class Page(_Document):
    id: str
    title: str = ""
    route: str = ""
    layout: Optional[str] = None
    components: List[Component] = Field(default_factory=list)
    next_page: Optional[str] = None
    branches: Optional[List[Branch]] = None
    is_end_page: bool = False
    is_confirmation_page: bool = False


class ThankYouPage(_Document):
    title: Optional[str] = None
    message: Optional[str] = None
    show_restart_button: bool = True


class FormApp(_Document):
    title: str
    version: Optional[str] = None
    language: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    pages: List[Page] = Field(default_factory=list)
    thank_you_page: Optional[ThankYouPage] = None


class FormDefinition(_Document):
    app: FormApp

    @property
    def pages(self) -> List[Page]:
        return self.app.pages

    def page_by_id(self, page_id: Optional[str]) -> Optional[Page]:
        if page_id is None:
            return None
        for page in self.app.pages:
            if page.id == page_id:
                return page
        return None

    def has_page(self, page_id: Optional[str]) -> bool:
        return self.page_by_id(page_id) is not None


_EMPTY_RULES = ValidationRules()

for _model in (Component, ArrayItemTemplate, Page, FormApp, FormDefinition):
    _model.model_rebuild()


__all__ = [
    "Condition",
    "Branch",
    "ValidationRules",
    "ExpressionConfig",
    "Component",
    "ArrayItemTemplate",
    "Page",
    "ThankYouPage",
    "FormApp",
    "FormDefinition",
]
