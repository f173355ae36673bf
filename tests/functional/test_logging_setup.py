"""Logging configuration shape and request id stamping."""

from __future__ import annotations

import logging

from form_runtime.logging_setup import RequestIdFilter, build_logging_config, request_id_var


def test_scheduler_loggers_are_quiet_unless_debugging():
    info = build_logging_config("info")
    assert info["root"]["level"] == "INFO"
    assert info["loggers"]["form_runtime.logic.scheduler"]["level"] == "WARNING"
    debug = build_logging_config("DEBUG")
    assert debug["loggers"]["form_runtime.logic.scheduler"]["level"] == "DEBUG"


def test_records_are_stamped_with_the_current_request_id():
    record = logging.LogRecord("form_runtime.test", logging.INFO, __file__, 1, "msg", None, None)
    RequestIdFilter().filter(record)
    assert record.request_id == "-"
    token = request_id_var.set("req-7")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-7"
