"""Form fill session endpoints.

Every handler looks up the session, forwards one event to it and returns
the session snapshot (or the event's own result). Validation outcomes are
data in the body; only malformed input becomes a problem response.
"""

from __future__ import annotations

from typing import Any, Dict
import logging

from fastapi import APIRouter, HTTPException, Response

from form_runtime.logic.form_session import FormSession, close_session, open_session
from form_runtime.logic.inmemory_state import SESSIONS
from form_runtime.logic.problem_factory import problem_session_not_found
from form_runtime.models.navigation import Transition
from form_runtime.models.response_types import AddItemRequest, ArrayItems, FlushResult, SetValueRequest
from form_runtime.routes.forms import require_form

router = APIRouter()
logger = logging.getLogger(__name__)


def require_session(session_id: str) -> FormSession:
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=problem_session_not_found(session_id))
    return session


def _transition_body(transition: Transition, session: FormSession) -> Dict[str, Any]:
    body = transition.model_dump(by_alias=True, mode="json", exclude={"state"})
    body["session"] = session.snapshot()
    return body


def _array_body(session: FormSession, array_id: str) -> ArrayItems:
    return ArrayItems(
        array_id=array_id,
        items=session.arrays.items(array_id),
        item_paths=session.arrays.item_paths(array_id),
    )


@router.post(
    "/forms/{form_id}/sessions",
    summary="Start filling a form",
    operation_id="startSession",
    tags=["Sessions"],
    status_code=201,
)
async def start_session(form_id: str) -> dict:
    definition = require_form(form_id)
    session = open_session(definition, form_id=form_id)
    return session.snapshot()


@router.get(
    "/sessions/{session_id}",
    summary="Current page view of a session",
    operation_id="getSession",
    tags=["Sessions"],
)
async def get_session(session_id: str) -> dict:
    return require_session(session_id).snapshot()


@router.delete(
    "/sessions/{session_id}",
    summary="End a session and cancel its pending evaluations",
    operation_id="deleteSession",
    tags=["Sessions"],
    status_code=204,
)
async def delete_session(session_id: str) -> Response:
    require_session(session_id)
    close_session(session_id)
    return Response(status_code=204)


@router.put(
    "/sessions/{session_id}/values/{field_id}",
    summary="Set a field value",
    operation_id="setFieldValue",
    tags=["Sessions"],
)
async def set_field_value(session_id: str, field_id: str, payload: SetValueRequest) -> dict:
    session = require_session(session_id)
    session.set_value(field_id, payload.value)
    return session.snapshot()


@router.post(
    "/sessions/{session_id}/validate",
    summary="Validate the current page",
    operation_id="validatePage",
    tags=["Navigation"],
)
async def validate_page(session_id: str) -> dict:
    session = require_session(session_id)
    errors = session.validate()
    return {"valid": not errors, "errors": errors, "session": session.snapshot()}


@router.post(
    "/sessions/{session_id}/next",
    summary="Advance to the next page or submit",
    operation_id="nextPage",
    tags=["Navigation"],
)
async def next_page(session_id: str) -> dict:
    session = require_session(session_id)
    return _transition_body(session.next(), session)


@router.post(
    "/sessions/{session_id}/previous",
    summary="Return to the previously visited page",
    operation_id="previousPage",
    tags=["Navigation"],
)
async def previous_page(session_id: str) -> dict:
    session = require_session(session_id)
    return _transition_body(session.previous(), session)


@router.post(
    "/sessions/{session_id}/reset",
    summary="Restart the fill without submitting",
    operation_id="resetSession",
    tags=["Navigation"],
)
async def reset_session(session_id: str) -> dict:
    session = require_session(session_id)
    session.reset()
    return session.snapshot()


@router.post(
    "/sessions/{session_id}/arrays/{array_id}/items",
    summary="Append an item to an array field",
    operation_id="addArrayItem",
    tags=["Arrays"],
    status_code=201,
    response_model=ArrayItems,
)
async def add_array_item(session_id: str, array_id: str, payload: AddItemRequest | None = None):
    session = require_session(session_id)
    session.add_array_item(array_id, payload.values if payload else None)
    return _array_body(session, array_id)


@router.put(
    "/sessions/{session_id}/arrays/{array_id}/items/{index}/{child_id}",
    summary="Edit one child value of an array item",
    operation_id="updateArrayItem",
    tags=["Arrays"],
    response_model=ArrayItems,
)
async def update_array_item(session_id: str, array_id: str, index: int, child_id: str, payload: SetValueRequest):
    session = require_session(session_id)
    session.update_array_item(array_id, index, child_id, payload.value)
    return _array_body(session, array_id)


@router.delete(
    "/sessions/{session_id}/arrays/{array_id}/items/{index}",
    summary="Remove an array item; later items shift down",
    operation_id="removeArrayItem",
    tags=["Arrays"],
    response_model=ArrayItems,
)
async def remove_array_item(session_id: str, array_id: str, index: int):
    session = require_session(session_id)
    session.remove_array_item(array_id, index)
    return _array_body(session, array_id)


@router.post(
    "/sessions/{session_id}/expressions/flush",
    summary="Run every pending debounced evaluation now",
    operation_id="flushExpressions",
    tags=["Expressions"],
    response_model=FlushResult,
)
async def flush_expressions(session_id: str):
    session = require_session(session_id)
    evaluated = session.flush()
    return FlushResult(evaluated=evaluated, session=session.snapshot())


@router.get(
    "/sessions/{session_id}/summary",
    summary="Confirmation summary of visited pages",
    operation_id="getSummary",
    tags=["Sessions"],
)
async def get_summary(session_id: str) -> dict:
    session = require_session(session_id)
    return {"sessionId": session_id, "sections": session.summary()}


__all__ = ["router", "require_session"]
