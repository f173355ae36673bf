"""Submission log and domain event observation endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query

from form_runtime.logic.events import get_buffered_events
from form_runtime.logic.inmemory_state import SUBMISSIONS_LOG
from form_runtime.models.response_types import Events, Submissions

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/submissions",
    summary="List recorded submissions",
    operation_id="listSubmissions",
    tags=["Submissions"],
    response_model=Submissions,
)
async def list_submissions(form_id: str | None = None):
    records = [r for r in SUBMISSIONS_LOG if form_id is None or r.get("formId") == form_id]
    return Submissions(submissions=records)


@router.get(
    "/events",
    summary="Buffered domain events",
    operation_id="listEvents",
    tags=["Events"],
    response_model=Events,
)
async def list_events(clear: bool = False, event_type: str | None = Query(default=None, alias="type")):
    return Events(events=get_buffered_events(clear=clear, event_type=event_type))


__all__ = ["router"]
