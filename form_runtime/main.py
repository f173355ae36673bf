"""Application factory for the form runtime HTTP surface."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from form_runtime.config import get_config
from form_runtime.errors import FormRuntimeError
from form_runtime.http.problem import (
    handle_form_runtime_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from form_runtime.http.request_id import RequestIdMiddleware
from form_runtime.logging_setup import configure_logging
from form_runtime.logic.form_session import close_session
from form_runtime.logic.inmemory_state import FORMS, SESSIONS
from form_runtime.routes import api_router
from form_runtime.routes.test_support import router as test_support_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    open_sessions = list(SESSIONS)
    for session_id in open_sessions:
        close_session(session_id)
    logger.info("app_shutdown sessions_closed=%s", len(open_sessions))


def _register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(FormRuntimeError, handle_form_runtime_error)
    app.add_exception_handler(Exception, handle_unexpected_error)


def create_app() -> FastAPI:
    """Build the app; logging is configured here, never at import."""
    settings = get_config()
    configure_logging(settings.logging.level)
    app = FastAPI(title="Form Runtime", version="0.1.0", lifespan=_lifespan)
    _register_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(test_support_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "forms": len(FORMS), "sessions": len(SESSIONS)}

    logger.info(
        "app_created routes=%s debounce_ms=%s max_sessions=%s",
        len(app.routes),
        settings.expressions.debounce_ms,
        settings.sessions.max_sessions,
    )
    return app
