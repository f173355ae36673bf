"""Centralised construction of problem+json payloads.

Route modules call these helpers instead of embedding status codes and code
tokens, so every error body has the same shape:
``{title, status, detail, message, code}``.
"""

from __future__ import annotations

from typing import Any, Dict, List
import logging

from form_runtime.errors import FormRuntimeError, UserInputError

logger = logging.getLogger(__name__)

_STATUS_BY_CODE: Dict[str, int] = {
    "FORM_NOT_FOUND": 404,
    "SESSION_NOT_FOUND": 404,
    "FIELD_NOT_FOUND": 404,
    "ARRAY_INDEX_INVALID": 422,
    "FORM_DEFINITION_INVALID": 422,
    "USER_INPUT_INVALID": 422,
}

_TITLES: Dict[int, str] = {
    400: "Bad Request",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


def make_problem(status: int, code: str, detail: str) -> Dict[str, object]:
    problem: Dict[str, object] = {
        "title": _TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "message": detail,
        "code": code,
    }
    logger.info("error_handler.handle code=%s status=%s", code, status)
    return problem


def problem_form_not_found(form_id: str) -> Dict[str, object]:
    return make_problem(404, "FORM_NOT_FOUND", f"form {form_id} not found")


def problem_session_not_found(session_id: str) -> Dict[str, object]:
    return make_problem(404, "SESSION_NOT_FOUND", f"session {session_id} not found")


def problem_form_definition_invalid(errors: List[Dict[str, Any]]) -> Dict[str, object]:
    """Summarise pydantic error entries (loc, msg) into one detail line."""
    parts = [
        f"{'.'.join(str(p) for p in err.get('loc', ())) or '<root>'}: {err.get('msg', 'invalid')}"
        for err in errors[:10]
    ]
    return make_problem(422, "FORM_DEFINITION_INVALID", "; ".join(parts) or "form definition is invalid")


def problem_request_invalid(errors: List[Dict[str, Any]]) -> Dict[str, object]:
    problem = make_problem(422, "REQUEST_INVALID", "Request validation failed")
    problem["errors"] = [
        {"loc": list(err.get("loc", [])), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in errors
    ]
    return problem


def problem_from_error(exc: FormRuntimeError) -> Dict[str, object]:
    """Map a runtime error raised while handling session input to a problem body."""
    default = 422 if isinstance(exc, UserInputError) else 400
    status = _STATUS_BY_CODE.get(exc.code, default)
    return make_problem(status, exc.code, exc.message)


__all__ = [
    "make_problem",
    "problem_form_not_found",
    "problem_session_not_found",
    "problem_form_definition_invalid",
    "problem_request_invalid",
    "problem_from_error",
]
