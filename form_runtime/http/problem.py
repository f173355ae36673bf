"""application/problem+json responses for every failure the API reports.

Bodies come from ``problem_factory``; this module only picks the status,
stamps the request id and logs. Form-fill validation failures never pass
through here: they are data in normal 200 bodies.
"""

from __future__ import annotations

from typing import Dict, Optional
import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from form_runtime.errors import FormRuntimeError
from form_runtime.logging_setup import request_id_var
from form_runtime.logic.problem_factory import make_problem, problem_from_error, problem_request_invalid

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(problem: Dict[str, object], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    body = {**problem, "requestId": request_id_var.get()}
    return JSONResponse(body, status_code=int(problem["status"]), media_type=PROBLEM_MEDIA_TYPE, headers=headers)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status = int(exc.status_code or 500)
    if isinstance(exc.detail, dict):
        problem = exc.detail
    else:
        problem = make_problem(status, "HTTP_ERROR", str(exc.detail or ""))
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()} or None
    return problem_response(problem, headers)


async def handle_form_runtime_error(request: Request, exc: FormRuntimeError) -> JSONResponse:
    logger.info("form_runtime_error path=%s code=%s", request.url.path, exc.code)
    return problem_response(problem_from_error(exc))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_invalid path=%s errors=%s", request.url.path, len(exc.errors()))
    return problem_response(problem_request_invalid(exc.errors()))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response(make_problem(500, "INTERNAL_ERROR", "unexpected server error"))


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_http_exception",
    "handle_form_runtime_error",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
