"""Form definition endpoints.

Implements:
- POST /forms                      load a definition, report order and graph diagnostics
- GET  /forms/{form_id}            return the loaded definition
- GET  /forms/{form_id}/logical-order
"""

from __future__ import annotations

from typing import Any, Dict
import logging
import uuid

from fastapi import APIRouter, Body, HTTPException
from pydantic import ValidationError

from form_runtime.http.problem import problem_response
from form_runtime.logic.inmemory_state import FORMS
from form_runtime.logic.page_ordering import diagnose_page_graph, logical_order_of
from form_runtime.logic.problem_factory import problem_form_definition_invalid, problem_form_not_found
from form_runtime.models.form_definition import FormDefinition
from form_runtime.models.response_types import FormLoaded, LogicalOrderView

router = APIRouter()
logger = logging.getLogger(__name__)


def require_form(form_id: str) -> FormDefinition:
    definition = FORMS.get(form_id)
    if definition is None:
        raise HTTPException(status_code=404, detail=problem_form_not_found(form_id))
    return definition


@router.post(
    "/forms",
    summary="Load a form definition",
    operation_id="loadForm",
    tags=["Forms"],
    status_code=201,
    response_model=FormLoaded,
)
async def load_form(payload: Dict[str, Any] = Body(...)):
    try:
        definition = FormDefinition.model_validate(payload)
    except ValidationError as e:
        return problem_response(problem_form_definition_invalid(e.errors()))
    form_id = str(uuid.uuid4())
    FORMS[form_id] = definition
    diagnostics = diagnose_page_graph(definition)
    logger.info("form_loaded form=%s title=%s pages=%s", form_id, definition.app.title, len(definition.pages))
    return FormLoaded(
        form_id=form_id,
        title=definition.app.title,
        page_count=len(definition.pages),
        logical_order=logical_order_of(definition),
        diagnostics=diagnostics,
    )


@router.get(
    "/forms/{form_id}",
    summary="Get a loaded form definition",
    operation_id="getForm",
    tags=["Forms"],
)
async def get_form(form_id: str) -> dict:
    definition = require_form(form_id)
    return {"formId": form_id, "definition": definition.model_dump(by_alias=True, exclude_none=True)}


@router.get(
    "/forms/{form_id}/logical-order",
    summary="Get the logical page order of a form",
    operation_id="getLogicalOrder",
    tags=["Forms"],
    response_model=LogicalOrderView,
)
async def get_logical_order(form_id: str):
    definition = require_form(form_id)
    return LogicalOrderView(form_id=form_id, logical_order=logical_order_of(definition))


__all__ = ["router", "require_form"]
