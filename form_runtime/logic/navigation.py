"""Branch navigator: the page-to-page state machine.

All functions take the form definition, an explicit ``NavigationState`` and
the current values and return new state; nothing is held between calls.
Forward moves are gated by page validation. Backward moves pop the visit
history and never validate.

Destination precedence for ``advance``:

1. end page -> submit
2. first branch whose conditions all hold and whose target exists
3. ``nextPage`` when it exists
4. next page in logical order
5. otherwise submit
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
import logging
import uuid

from form_runtime.logic import events
from form_runtime.logic.confirmation import render_thank_you
from form_runtime.logic.field_rules import ValidationErrors
from form_runtime.logic.inmemory_state import SUBMISSIONS_LOG
from form_runtime.logic.page_ordering import (
    get_logical_page_count,
    get_logical_page_index,
    logical_page_ids,
)
from form_runtime.logic.validation import validate_page
from form_runtime.logic.visibility_rules import branch_condition_matches
from form_runtime.models.expression import FieldExpressionState
from form_runtime.models.form_definition import FormDefinition, Page
from form_runtime.models.navigation import (
    NavigationState,
    PageChangeEvent,
    SubmitResult,
    Transition,
)

logger = logging.getLogger(__name__)


def first_page_id(definition: FormDefinition) -> Optional[str]:
    ids = logical_page_ids(definition)
    return ids[0] if ids else None


def initial_state(definition: FormDefinition) -> NavigationState:
    """State positioned on the first logical page with a one-entry history."""
    first = first_page_id(definition)
    return NavigationState(current_page_id=first, history=[first] if first else [])


def reset(definition: FormDefinition) -> NavigationState:
    return initial_state(definition)


def get_current_page(definition: FormDefinition, state: NavigationState) -> Optional[Page]:
    """Resolve the current page; an unknown id falls back to the first page."""
    page = definition.page_by_id(state.current_page_id)
    if page is None and state.current_page_id is not None:
        logger.warning("navigation_page_missing page=%s", state.current_page_id)
    if page is None:
        page = definition.page_by_id(first_page_id(definition))
    return page


def validate_current_page(
    definition: FormDefinition,
    state: NavigationState,
    values: Mapping[str, Any],
    overrides: Optional[Mapping[str, FieldExpressionState]] = None,
) -> ValidationErrors:
    page = get_current_page(definition, state)
    if page is None:
        return {}
    return validate_page(page, values, overrides)


def resolve_next_page_id(definition: FormDefinition, page: Page, values: Mapping[str, Any]) -> Optional[str]:
    """Destination after ``page``; None means the flow should submit."""
    if page.is_end_page:
        return None
    for branch in page.branches or []:
        if not branch_condition_matches(branch.conditions(), values):
            continue
        if definition.has_page(branch.next_page):
            return branch.next_page
        logger.warning("navigation_branch_target_missing page=%s target=%s", page.id, branch.next_page)
    if page.next_page:
        if definition.has_page(page.next_page):
            return page.next_page
        logger.warning("navigation_next_page_missing page=%s target=%s", page.id, page.next_page)
    ids = logical_page_ids(definition)
    index = get_logical_page_index(definition, page.id)
    if 0 <= index < len(ids) - 1:
        return ids[index + 1]
    return None


def page_change_event(
    definition: FormDefinition,
    page_id: str,
    previous_page_id: Optional[str] = None,
) -> PageChangeEvent:
    page = definition.page_by_id(page_id)
    index = get_logical_page_index(definition, page_id)
    total = get_logical_page_count(definition)
    previous_index = get_logical_page_index(definition, previous_page_id) if previous_page_id else None
    return PageChangeEvent(
        page_id=page_id,
        page_index=index,
        page_title=page.title if page else "",
        total_pages=total,
        is_first_page=index == 0,
        is_last_page=index == total - 1,
        is_end_page=bool(page and page.is_end_page),
        is_confirmation_page=bool(page and page.is_confirmation_page),
        previous_page_id=previous_page_id,
        previous_page_index=previous_index,
    )


def _move(definition: FormDefinition, state: NavigationState, target: str, form_id: Optional[str]) -> Transition:
    previous = state.current_page_id
    new_state = NavigationState(current_page_id=target, history=[*state.history, target])
    change = page_change_event(definition, target, previous)
    events.publish(events.PAGE_CHANGED, {"formId": form_id, **change.model_dump(by_alias=True)})
    return Transition(kind="moved", state=new_state, page_change=change)


def submit(
    definition: FormDefinition,
    state: NavigationState,
    values: Mapping[str, Any],
    form_id: Optional[str] = None,
) -> Transition:
    """Record a submission and return to the first page.

    The caller clears its value map and validation state; the returned
    record holds a copy of the submitted values.
    """
    values_copy: Dict[str, Any] = dict(values)
    result = SubmitResult(
        submission_id=str(uuid.uuid4()),
        form_id=form_id,
        values=values_copy,
        page_path=list(state.history),
        submitted_at=datetime.now(timezone.utc),
        thank_you=render_thank_you(definition, values_copy),
    )
    record = result.model_dump(mode="json", by_alias=True)
    SUBMISSIONS_LOG.append(record)
    events.publish(
        events.FORM_SUBMITTED,
        {"formId": form_id, "submissionId": result.submission_id, "pagePath": result.page_path},
    )
    logger.info(
        "navigation_submit form=%s submission=%s pages=%s",
        form_id,
        result.submission_id,
        len(result.page_path),
    )
    return Transition(kind="submitted", state=initial_state(definition), submission=result)


def advance(
    definition: FormDefinition,
    state: NavigationState,
    values: Mapping[str, Any],
    overrides: Optional[Mapping[str, FieldExpressionState]] = None,
    form_id: Optional[str] = None,
) -> Transition:
    """Validate the current page, then move forward or submit."""
    page = get_current_page(definition, state)
    if page is None:
        return Transition(kind="unchanged", state=state)
    if state.current_page_id != page.id:
        state = NavigationState(current_page_id=page.id, history=[*state.history, page.id])

    errors = validate_page(page, values, overrides)
    if errors:
        logger.info("navigation_blocked form=%s page=%s fields=%s", form_id, page.id, len(errors))
        return Transition(kind="blocked", state=state, errors=errors)

    target = resolve_next_page_id(definition, page, values)
    if target is None:
        return submit(definition, state, values, form_id)
    logger.info("navigation_advance form=%s from=%s to=%s", form_id, page.id, target)
    return _move(definition, state, target, form_id)


def retreat(state: NavigationState) -> NavigationState:
    """Pop the visit history; a single-entry history is left untouched."""
    if len(state.history) <= 1:
        return state
    history = list(state.history[:-1])
    return NavigationState(current_page_id=history[-1], history=history)


def go_back(definition: FormDefinition, state: NavigationState, form_id: Optional[str] = None) -> Transition:
    """``retreat`` wrapped as a transition with its page-change event."""
    new_state = retreat(state)
    if new_state is state or new_state.current_page_id is None:
        return Transition(kind="unchanged", state=state)
    change = page_change_event(definition, new_state.current_page_id, state.current_page_id)
    events.publish(events.PAGE_CHANGED, {"formId": form_id, **change.model_dump(by_alias=True)})
    logger.info("navigation_retreat form=%s from=%s to=%s", form_id, state.current_page_id, new_state.current_page_id)
    return Transition(kind="moved", state=new_state, page_change=change)


__all__ = [
    "first_page_id",
    "initial_state",
    "reset",
    "get_current_page",
    "validate_current_page",
    "resolve_next_page_id",
    "page_change_event",
    "submit",
    "advance",
    "retreat",
    "go_back",
]
