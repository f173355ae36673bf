"""Dependency-driven dynamic field behaviour with debounced re-evaluation.

A field bound to an ``ExpressionConfig`` is re-evaluated when a field it
depends on changes. With no declared dependency list (or an empty one), any
change triggers it, including a change to the required map made by another
binding. A value binding is never triggered by its own write-back. Requests are debounced per field on a cooperative scheduler: each new
request restarts the field's timer, and only the last one evaluates, reading
the live context at that moment.

The evaluation result drives exactly one attribute of the field's
``FieldExpressionState`` according to the binding mode. ``value`` results
are handed back to the owner through ``on_value`` so they land in the value
map the same way user input does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from form_runtime.config import get_config
from form_runtime.logic.expression_engine import ExpressionEngine, get_engine
from form_runtime.logic.scheduler import CooperativeScheduler, ScheduledTask
from form_runtime.models.component_type import ExpressionMode
from form_runtime.models.expression import ExpressionContext, ExpressionResult, FieldExpressionState
from form_runtime.models.form_definition import ExpressionConfig

logger = logging.getLogger(__name__)

DEFAULT_VALIDATION_MESSAGE = "Validation failed"

ContextProvider = Callable[[], ExpressionContext]
ValueSink = Callable[[str, Any], None]


@dataclass
class FieldBinding:
    field_id: str
    config: ExpressionConfig
    state: FieldExpressionState

    def triggered_by(self, changed: Iterable[str]) -> bool:
        if not self.config.evaluate_on_change:
            return False
        changed_ids = set(changed)
        # a value binding writes its own field; that write must not re-trigger it
        if self.config.mode == ExpressionMode.VALUE:
            changed_ids.discard(self.field_id)
        if not changed_ids:
            return False
        if not self.config.dependencies:
            return True
        return bool(changed_ids.intersection(self.config.dependencies))


def apply_result(state: FieldExpressionState, config: ExpressionConfig, result: ExpressionResult) -> FieldExpressionState:
    """Return the state updated for a result, driving only the mode's attribute."""
    update: Dict[str, Any] = {"evaluations": state.evaluations + 1, "error": result.error}
    mode = config.mode
    value = result.value
    if result.error is not None:
        if mode == ExpressionMode.VALUE:
            update["value"] = config.default_value
        return state.model_copy(update=update)

    if mode == ExpressionMode.VALUE:
        update["value"] = config.default_value if value is None else value
    elif mode == ExpressionMode.VISIBILITY:
        update["visible"] = True if value is None else bool(value)
    elif mode == ExpressionMode.DISABLED:
        update["disabled"] = False if value is None else bool(value)
    elif mode == ExpressionMode.REQUIRED:
        update["required"] = None if value is None else bool(value)
    elif mode == ExpressionMode.LABEL:
        if isinstance(value, str):
            update["label"] = value
    elif mode == ExpressionMode.HELPER_TEXT:
        if isinstance(value, str):
            update["helper_text"] = value
    elif mode == ExpressionMode.VALIDATION:
        failed = value is not None and not bool(value)
        update["validation_error"] = (config.error_message or DEFAULT_VALIDATION_MESSAGE) if failed else None
    return state.model_copy(update=update)


class DynamicFieldEngine:
    """Expression bindings for one form fill."""

    def __init__(
        self,
        context_provider: ContextProvider,
        on_value: Optional[ValueSink] = None,
        engine: Optional[ExpressionEngine] = None,
        scheduler: Optional[CooperativeScheduler] = None,
        default_debounce_ms: Optional[int] = None,
    ):
        self.context_provider = context_provider
        self.on_value = on_value
        self.engine = engine or get_engine()
        self.scheduler = scheduler or CooperativeScheduler()
        if default_debounce_ms is None:
            default_debounce_ms = get_config().expressions.debounce_ms
        self.default_debounce_ms = default_debounce_ms
        self._bindings: Dict[str, FieldBinding] = {}
        self._bulk = False

    def register(self, field_id: str, config: ExpressionConfig) -> FieldBinding:
        self.scheduler.cancel(field_id)
        binding = FieldBinding(
            field_id=field_id,
            config=config,
            state=FieldExpressionState(field_id=field_id, mode=config.mode),
        )
        self._bindings[field_id] = binding
        logger.debug("dynamic_field_registered field=%s mode=%s", field_id, config.mode.value)
        return binding

    def unregister(self, field_id: str) -> None:
        self.scheduler.cancel(field_id)
        self._bindings.pop(field_id, None)

    def field_ids(self) -> List[str]:
        return list(self._bindings)

    def state_of(self, field_id: str) -> Optional[FieldExpressionState]:
        binding = self._bindings.get(field_id)
        return binding.state if binding else None

    def overrides(self) -> Dict[str, FieldExpressionState]:
        return {field_id: b.state for field_id, b in self._bindings.items()}

    def debounce_for(self, binding: FieldBinding) -> int:
        if binding.config.debounce_ms is not None:
            return binding.config.debounce_ms
        return self.default_debounce_ms

    def notify_change(self, changed: Iterable[str]) -> List[ScheduledTask]:
        """Schedule (or restart) evaluation of every binding the change affects."""
        changed = list(changed)
        tasks = []
        for field_id, binding in self._bindings.items():
            if not binding.triggered_by(changed):
                continue
            tasks.append(
                self.scheduler.call_later(
                    field_id,
                    self.debounce_for(binding),
                    lambda fid=field_id: self.evaluate_now(fid),
                )
            )
        return tasks

    def evaluate_now(self, field_id: str) -> Optional[FieldExpressionState]:
        binding = self._bindings.get(field_id)
        if binding is None:
            return None
        previous = binding.state
        result = self.engine.evaluate(binding.config.expression, self.context_provider())
        if result.error:
            logger.warning("dynamic_field_evaluation_failed field=%s error=%s", field_id, result.error)
        binding.state = apply_result(previous, binding.config, result)
        if binding.config.mode == ExpressionMode.VALUE and self.on_value is not None:
            self.on_value(field_id, binding.state.value)
        elif binding.config.mode == ExpressionMode.REQUIRED and binding.state.required != previous.required and not self._bulk:
            self.notify_change([field_id])
        return binding.state

    def evaluate_all(self) -> Dict[str, FieldExpressionState]:
        """Evaluate every binding immediately, in registration order."""
        self._bulk = True
        try:
            for field_id in list(self._bindings):
                self.scheduler.cancel(field_id)
                self.evaluate_now(field_id)
        finally:
            self._bulk = False
        return self.overrides()

    def run_due(self) -> int:
        return self.scheduler.run_due()

    def flush(self) -> int:
        return self.scheduler.flush()

    def pending(self) -> List[str]:
        return self.scheduler.pending_keys()

    def teardown(self) -> None:
        cancelled = self.scheduler.cancel_all()
        if cancelled:
            logger.info("dynamic_fields_teardown cancelled=%s", cancelled)
        self._bindings.clear()


__all__ = [
    "DEFAULT_VALIDATION_MESSAGE",
    "FieldBinding",
    "apply_result",
    "DynamicFieldEngine",
]
