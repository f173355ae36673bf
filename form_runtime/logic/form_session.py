"""One form fill: navigation state, values, errors and dynamic bindings.

``FormSession`` is the imperative shell around the pure navigation and
validation functions. Every public event first runs any debounced
expression evaluations that have come due, then applies the event. The
session also owns the array collections and the dynamic field bindings of
its fill, and tears their timers down when it ends.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set
import logging
import uuid

from form_runtime.config import get_config
from form_runtime.errors import UserInputError
from form_runtime.logic import events, navigation
from form_runtime.logic.array_fields import ArrayFieldManager
from form_runtime.logic.component_kinds import iter_components, kind_for, value_fields
from form_runtime.logic.confirmation import build_summary, render_page_text
from form_runtime.logic.dynamic_fields import DynamicFieldEngine
from form_runtime.logic.expression_engine import ExpressionEngine
from form_runtime.logic.field_rules import ValidationErrors, ValidationScope, effective_required
from form_runtime.logic.inmemory_state import SESSIONS
from form_runtime.logic.page_ordering import get_logical_page_count, get_logical_page_index
from form_runtime.logic.scheduler import Clock, CooperativeScheduler, monotonic_ms
from form_runtime.logic.validation import is_in_scope
from form_runtime.models.component_type import ComponentType
from form_runtime.models.expression import ExpressionContext
from form_runtime.models.form_definition import Component, FormDefinition, Page
from form_runtime.models.navigation import SubmitResult, Transition

logger = logging.getLogger(__name__)


def initial_values(definition: FormDefinition) -> Dict[str, Any]:
    """Starting value map: declared defaults, and an empty list per array field."""
    values: Dict[str, Any] = {}
    for page in definition.pages:
        for component in value_fields(page.components):
            if component.kind == ComponentType.ARRAY:
                values.setdefault(component.id, [])
            elif component.default_value is not None:
                values.setdefault(component.id, component.default_value)
    return values


class FormSession:
    def __init__(
        self,
        definition: FormDefinition,
        form_id: Optional[str] = None,
        session_id: Optional[str] = None,
        clock: Clock = monotonic_ms,
        debounce_ms: Optional[int] = None,
        engine: Optional[ExpressionEngine] = None,
    ):
        self.definition = definition
        self.form_id = form_id
        self.session_id = session_id or str(uuid.uuid4())
        self.state = navigation.initial_state(definition)
        self.values: Dict[str, Any] = initial_values(definition)
        self.errors: ValidationErrors = {}
        self.last_submission: Optional[SubmitResult] = None
        self.fields: Dict[str, Component] = {}
        for page in definition.pages:
            for component in value_fields(page.components):
                self.fields.setdefault(component.id, component)
        self.arrays = ArrayFieldManager.from_definition(definition)
        self.dynamic = DynamicFieldEngine(
            context_provider=self.expression_context,
            on_value=self._write_back,
            engine=engine,
            scheduler=CooperativeScheduler(clock=clock),
            default_debounce_ms=debounce_ms,
        )
        self._register_bindings()
        self.dynamic.evaluate_all()

    def _register_bindings(self) -> None:
        for page in self.definition.pages:
            for component in iter_components(page.components):
                config = component.expression_config()
                if config is not None:
                    self.dynamic.register(component.id, config)

    def expression_context(self) -> ExpressionContext:
        overrides = self.dynamic.overrides()
        # declared fields without a value are visible to expressions as null
        values: Dict[str, Any] = {fid: None for fid in self.fields}
        values.update(self.values)
        return ExpressionContext(
            values=values,
            validation={fid: fid not in self.errors for fid in self.fields},
            required={fid: effective_required(c, overrides.get(fid)) for fid, c in self.fields.items()},
            errors={fid: (self.errors.get(fid) or [None])[0] for fid in self.fields},
            metadata={
                "formId": self.form_id,
                "sessionId": self.session_id,
                "currentPageId": self.state.current_page_id,
            },
        )

    def _tick(self) -> None:
        ran = self.dynamic.run_due()
        if ran:
            logger.debug("session_due_evaluations session=%s ran=%s", self.session_id, ran)

    def _assign(self, field_id: str, value: Any) -> None:
        changed = [field_id] if self.values.get(field_id) != value else []
        self.values[field_id] = value
        if field_id in self.errors:
            del self.errors[field_id]
            changed = [field_id]
        if changed:
            self.dynamic.notify_change(changed)

    def _write_back(self, field_id: str, value: Any) -> None:
        if self.values.get(field_id) == value:
            return
        self.values[field_id] = value
        self.dynamic.notify_change([field_id])

    # Input events

    def set_value(self, field_id: str, value: Any) -> None:
        self._tick()
        if field_id not in self.fields:
            raise UserInputError(f"unknown field {field_id!r}", code="FIELD_NOT_FOUND")
        if self.arrays.is_array(field_id):
            value = self.arrays.replace(field_id, value)
        self._assign(field_id, value)

    def add_array_item(self, array_id: str, initial: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self._tick()
        items = self.arrays.add_item(array_id, initial)
        self._assign(array_id, items)
        return items

    def update_array_item(self, array_id: str, index: int, child_id: str, value: Any) -> List[Dict[str, Any]]:
        self._tick()
        items = self.arrays.update_item(array_id, index, child_id, value)
        self._assign(array_id, items)
        return items

    def remove_array_item(self, array_id: str, index: int) -> List[Dict[str, Any]]:
        self._tick()
        items = self.arrays.remove_item(array_id, index)
        self._assign(array_id, items)
        return items

    def validate(self) -> ValidationErrors:
        self._tick()
        errors = navigation.validate_current_page(self.definition, self.state, self.values, self.dynamic.overrides())
        changed = set(errors) ^ set(self.errors)
        changed.update(k for k in errors if errors[k] != self.errors.get(k))
        self.errors = errors
        if changed:
            self.dynamic.notify_change(sorted(changed))
        return errors

    def next(self) -> Transition:
        self._tick()
        transition = navigation.advance(
            self.definition,
            self.state,
            self.values,
            overrides=self.dynamic.overrides(),
            form_id=self.form_id,
        )
        self.state = transition.state
        if transition.kind == "blocked":
            self.errors = transition.errors
            self.dynamic.notify_change(sorted(transition.errors))
        elif transition.kind == "submitted":
            self.last_submission = transition.submission
            self._clear_fill()
        else:
            self.errors = {}
        return transition

    def previous(self) -> Transition:
        self._tick()
        transition = navigation.go_back(self.definition, self.state, form_id=self.form_id)
        self.state = transition.state
        self.errors = {}
        return transition

    def reset(self) -> None:
        self._tick()
        self.state = navigation.reset(self.definition)
        self._clear_fill()
        events.publish(events.FORM_RESET, {"formId": self.form_id, "sessionId": self.session_id})

    def flush(self) -> int:
        return self.dynamic.flush()

    def _clear_fill(self) -> None:
        self.dynamic.scheduler.cancel_all()
        self.arrays.clear()
        self.values = initial_values(self.definition)
        self.errors = {}
        self.dynamic.evaluate_all()

    def teardown(self) -> None:
        self.dynamic.teardown()
        logger.info("session_teardown session=%s form=%s", self.session_id, self.form_id)

    # Read side

    def current_page(self) -> Optional[Page]:
        return navigation.get_current_page(self.definition, self.state)

    def visible_component_ids(self, page: Page) -> List[str]:
        scope = ValidationScope(values=self.values, overrides=self.dynamic.overrides())
        visible: List[str] = []

        def walk(components: List[Component]) -> None:
            for component in components or []:
                if not is_in_scope(component, scope):
                    continue
                visible.append(component.id)
                if kind_for(component).container:
                    walk(component.children or [])

        walk(page.components)
        return visible

    def hidden_field_ids(self) -> Set[str]:
        """Fields a dynamic visibility expression currently hides."""
        return {fid for fid, state in self.dynamic.overrides().items() if not state.visible}

    def summary(self) -> List[Dict[str, Any]]:
        self._tick()
        return build_summary(self.definition, self.state.history, self.values, self.hidden_field_ids())

    def snapshot(self) -> Dict[str, Any]:
        """Everything a presentational client needs to draw the current page."""
        self._tick()
        page = self.current_page()
        page_id = page.id if page else None
        total = get_logical_page_count(self.definition)
        index = get_logical_page_index(self.definition, page_id)
        return {
            "sessionId": self.session_id,
            "formId": self.form_id,
            "navigation": self.state.model_dump(by_alias=True, mode="json"),
            "page": page.model_dump(by_alias=True, mode="json", exclude_none=True) if page else None,
            "pageIndex": index,
            "totalPages": total,
            "isFirstPage": index == 0,
            "isLastPage": index == total - 1,
            "canGoBack": len(self.state.history) > 1,
            "visibleComponentIds": self.visible_component_ids(page) if page else [],
            "renderedText": render_page_text(page, self.values, hidden=self.hidden_field_ids()) if page else {},
            "values": dict(self.values),
            "errors": dict(self.errors),
            "dynamicFields": {
                fid: state.model_dump(by_alias=True, mode="json") for fid, state in self.dynamic.overrides().items()
            },
            "pendingEvaluations": self.dynamic.pending(),
        }


def open_session(definition: FormDefinition, form_id: Optional[str] = None, **kwargs: Any) -> FormSession:
    """Create and register a session, evicting the oldest beyond the configured cap."""
    session = FormSession(definition, form_id=form_id, **kwargs)
    SESSIONS[session.session_id] = session
    limit = get_config().sessions.max_sessions
    while len(SESSIONS) > limit:
        oldest_id = next(iter(SESSIONS))
        SESSIONS.pop(oldest_id).teardown()
        logger.warning("session_evicted session=%s limit=%s", oldest_id, limit)
    logger.info("session_opened session=%s form=%s", session.session_id, form_id)
    return session


def close_session(session_id: str) -> bool:
    session = SESSIONS.pop(session_id, None)
    if session is None:
        return False
    session.teardown()
    return True


__all__ = ["initial_values", "FormSession", "open_session", "close_session"]
