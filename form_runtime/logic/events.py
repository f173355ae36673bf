"""Form lifecycle events.

Navigation and session flows call ``publish`` when a fill changes page, is
submitted or is reset. Each event is logged and kept in a bounded in-process
log (``events.buffer_size``, oldest dropped first) that the events endpoint
and the tests read back.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional
import logging

from form_runtime.config import get_config

logger = logging.getLogger(__name__)

PAGE_CHANGED = "form.page_changed"
FORM_SUBMITTED = "form.submitted"
FORM_RESET = "form.reset"

EVENT_TYPES = (PAGE_CHANGED, FORM_SUBMITTED, FORM_RESET)

_log: Optional[Deque[Dict[str, Any]]] = None
_sequence = 0


def _event_log() -> Deque[Dict[str, Any]]:
    global _log
    if _log is None:
        _log = deque(maxlen=get_config().events.buffer_size)
    return _log


def publish(event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    global _sequence
    log = _event_log()
    if log.maxlen is not None and len(log) == log.maxlen:
        logger.debug("event_dropped type=%s seq=%s", log[0]["type"], log[0]["seq"])
    _sequence += 1
    event = {"seq": _sequence, "type": event_type, "payload": payload}
    log.append(event)
    logger.info("event_publish seq=%s type=%s form=%s", _sequence, event_type, payload.get("formId"))
    return event


def get_buffered_events(clear: bool = True, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    """Events in publish order, optionally of one type; ``clear`` empties the whole log."""
    log = _event_log()
    events = [e for e in log if event_type is None or e["type"] == event_type]
    if clear:
        log.clear()
    return events


def clear_events() -> None:
    """Drop the log and restart numbering; the next publish re-reads the buffer size."""
    global _log, _sequence
    _log = None
    _sequence = 0


__all__ = [
    "PAGE_CHANGED",
    "FORM_SUBMITTED",
    "FORM_RESET",
    "EVENT_TYPES",
    "publish",
    "get_buffered_events",
    "clear_events",
]
