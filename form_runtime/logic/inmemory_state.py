"""Central in-memory state holders.

Single source of truth for the ephemeral state shared by routes: loaded
form definitions, live fill sessions and the submission log. Nothing here
survives a process restart.
"""

from __future__ import annotations

from typing import Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from form_runtime.logic.form_session import FormSession
    from form_runtime.models.form_definition import FormDefinition

# form_id -> loaded definition
FORMS: Dict[str, "FormDefinition"] = {}

# session_id -> live session; insertion order doubles as age for eviction
SESSIONS: Dict[str, "FormSession"] = {}

# Submission records in submit order (SubmitResult dumps, camelCase keys)
SUBMISSIONS_LOG: List[Dict[str, Any]] = []


def reset_state() -> None:
    """Tear down every session and clear all stores."""
    for session in list(SESSIONS.values()):
        session.teardown()
    SESSIONS.clear()
    FORMS.clear()
    SUBMISSIONS_LOG.clear()


__all__ = ["FORMS", "SESSIONS", "SUBMISSIONS_LOG", "reset_state"]
