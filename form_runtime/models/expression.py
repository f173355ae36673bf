"""Expression evaluation context and result models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from form_runtime.models.component_type import ExpressionMode


class ExpressionContext(BaseModel):
    """Live form state an expression is evaluated against."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    values: Dict[str, Any] = Field(default_factory=dict)
    validation: Dict[str, bool] = Field(default_factory=dict)
    required: Dict[str, bool] = Field(default_factory=dict)
    errors: Dict[str, Optional[str]] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TemplateContext(BaseModel):
    """Sources a template token is resolved against; later sources win on merge."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    form_values: Dict[str, Any] = Field(default_factory=dict)
    calculated_values: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def merged(self) -> Dict[str, Any]:
        return {**self.form_values, **self.calculated_values, **self.metadata}


class ExpressionResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    value: Any = None
    error: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.error is None


class FieldExpressionState(BaseModel):
    """Effective dynamic state of one field after its expression last ran.

    Only the attribute matching ``mode`` is driven by the expression; the
    rest keep their neutral defaults so consumers can merge blindly.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field_id: str
    mode: ExpressionMode
    value: Any = None
    visible: bool = True
    disabled: bool = False
    required: Optional[bool] = None
    label: Optional[str] = None
    helper_text: Optional[str] = None
    validation_error: Optional[str] = None
    error: Optional[str] = None
    evaluations: int = 0

    @property
    def has_error(self) -> bool:
        return self.error is not None


__all__ = ["ExpressionContext", "TemplateContext", "ExpressionResult", "FieldExpressionState"]
