"""Stateless expression and template endpoints.

Implements:
- POST /expressions/evaluate   evaluate one expression against a supplied context
- POST /expressions/validate   syntax check plus referenced field ids
- POST /templates/render       substitute ``{{token}}`` occurrences
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from form_runtime.logic.expression_engine import get_engine
from form_runtime.logic.template_engine import get_template_engine
from form_runtime.models.expression import TemplateContext
from form_runtime.models.response_types import (
    EvaluateExpressionRequest,
    EvaluationView,
    ExpressionValidity,
    RenderedTemplate,
    RenderTemplateRequest,
    ValidateExpressionRequest,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/expressions/evaluate",
    summary="Evaluate an expression",
    operation_id="evaluateExpression",
    tags=["Expressions"],
    response_model=EvaluationView,
)
async def evaluate_expression(payload: EvaluateExpressionRequest):
    result = get_engine().evaluate(payload.expression, payload.context)
    return EvaluationView(
        value=result.value,
        error=result.error,
        success=result.success,
        dependencies=result.dependencies,
    )


@router.post(
    "/expressions/validate",
    summary="Check expression syntax",
    operation_id="validateExpression",
    tags=["Expressions"],
    response_model=ExpressionValidity,
)
async def validate_expression(payload: ValidateExpressionRequest):
    engine = get_engine()
    valid, error = engine.validate(payload.expression)
    return ExpressionValidity(valid=valid, error=error, dependencies=engine.get_dependencies(payload.expression))


@router.post(
    "/templates/render",
    summary="Render a {{token}} template",
    operation_id="renderTemplate",
    tags=["Templates"],
    response_model=RenderedTemplate,
)
async def render_template(payload: RenderTemplateRequest):
    engine = get_template_engine()
    context = TemplateContext(
        form_values=payload.form_values,
        calculated_values=payload.calculated_values,
        metadata=payload.metadata,
    )
    return RenderedTemplate(
        rendered=engine.render(payload.template, context),
        tokens=engine.extract_tokens(payload.template),
    )


__all__ = ["router"]
