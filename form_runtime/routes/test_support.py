"""Reset hook for integration runs.

``POST /__test__/reset-state`` returns the process to a cold start between
scenarios: sessions are torn down (cancelling their pending evaluations),
loaded forms and submissions are dropped, the event log restarts and the
order, expression and template caches are emptied.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import Response

from form_runtime.logic import events, inmemory_state
from form_runtime.logic.expression_engine import get_engine
from form_runtime.logic.page_ordering import clear_order_cache
from form_runtime.logic.template_engine import get_template_engine

logger = logging.getLogger(__name__)

router = APIRouter()


def reset_runtime_state() -> None:
    sessions = len(inmemory_state.SESSIONS)
    inmemory_state.reset_state()
    events.clear_events()
    clear_order_cache()
    get_engine().clear_cache()
    get_template_engine().clear_cache()
    logger.info("runtime_state_reset sessions_closed=%s", sessions)


@router.post("/__test__/reset-state", include_in_schema=False, status_code=204)
async def reset_state() -> Response:
    reset_runtime_state()
    return Response(status_code=204)


__all__ = ["router", "reset_runtime_state"]
