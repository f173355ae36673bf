"""Logging configuration for the form runtime service.

One stdout handler on the root logger carries every module logger. Records
are stamped with the id of the HTTP request being served (``-`` outside a
request) so a keystroke's evaluation logs can be traced back to the call that
triggered it. Expression scheduling logs per keystroke and is held at WARNING
unless the configured level asks for DEBUG.
"""
from __future__ import annotations

from contextvars import ContextVar
from logging.config import dictConfig
from typing import Any, Dict, Optional
import logging

request_id_var: ContextVar[str] = ContextVar("form_runtime_request_id", default="-")

_FORMAT = "%(asctime)s %(levelname)s:%(name)s:[%(request_id)s] %(message)s"
_QUIET_LOGGERS = ("form_runtime.logic.scheduler", "form_runtime.logic.dynamic_fields")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    level = level.upper()
    quiet_level = "DEBUG" if level == "DEBUG" else "WARNING"
    console = {"level": level, "handlers": ["console"], "propagate": False}
    loggers: Dict[str, Any] = {name: dict(console) for name in ("uvicorn", "uvicorn.error", "uvicorn.access")}
    loggers.update({name: {"level": quiet_level} for name in _QUIET_LOGGERS})
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {"default": {"format": _FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "filters": ["request_id"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Install the runtime logging configuration unless the root logger already has handlers."""
    if logging.getLogger().handlers:
        return
    dictConfig(build_logging_config(level or "INFO"))


__all__ = ["request_id_var", "RequestIdFilter", "build_logging_config", "configure_logging"]
