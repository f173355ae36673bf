"""Visibility and branch condition evaluation.

Centralizes condition checks used by the validation walk (display gating)
and by the navigator (branch matching) so both compare values the same way.

The two call sites combine multiple conditions differently and are kept
apart on purpose: display gating is satisfied when ANY condition holds,
branch matching only when ALL conditions hold.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional
import logging

from form_runtime.errors import ConfigurationError
from form_runtime.logic.value_canonical import canonical_string, to_number
from form_runtime.models.component_type import OPERATOR_ALIASES, ConditionOperator
from form_runtime.models.form_definition import Component, Condition

logger = logging.getLogger(__name__)


def normalize_operator(operator: object) -> str:
    """Return the canonical symbol for an operator spelling.

    Raises ConfigurationError for unknown operators.
    """
    op = OPERATOR_ALIASES.get(str(operator).strip()) if operator is not None else None
    if op is None:
        raise ConfigurationError(f"unknown condition operator {operator!r}", code="CONDITION_OPERATOR_UNKNOWN")
    return op


def compare(operator: str, field_value: Any, condition_value: Any) -> bool:
    """Apply a canonical operator to a field value and a condition value.

    Equality compares canonical strings; ordering compares floats and is
    false whenever either side is not numeric.
    """
    if operator == ConditionOperator.EQ:
        return canonical_string(field_value) == canonical_string(condition_value)
    if operator == ConditionOperator.NE:
        return canonical_string(field_value) != canonical_string(condition_value)
    left = to_number(field_value)
    right = to_number(condition_value)
    # NaN compares false for every ordering operator
    if operator == ConditionOperator.GT:
        return left > right
    if operator == ConditionOperator.LT:
        return left < right
    if operator == ConditionOperator.GE:
        return left >= right
    if operator == ConditionOperator.LE:
        return left <= right
    raise ConfigurationError(f"unsupported operator {operator!r}", code="CONDITION_OPERATOR_UNKNOWN")


def evaluate_condition(condition: Condition, values: Mapping[str, Any]) -> Optional[bool]:
    """Evaluate one condition; None when the condition is malformed.

    Callers decide what an unusable condition means at their call site.
    """
    try:
        op = normalize_operator(condition.operator)
    except ConfigurationError:
        logger.warning(
            "condition_operator_unknown field=%s operator=%r",
            condition.field,
            condition.operator,
        )
        return None
    return compare(op, values.get(condition.field), condition.value)


def is_visible(conditions: Optional[Iterable[Condition]], values: Mapping[str, Any]) -> bool:
    """Return True if a component with these conditions should be displayed.

    No conditions means always visible. Otherwise visible when any condition
    holds; a malformed condition counts as satisfied.
    """
    conds = list(conditions or [])
    if not conds:
        return True
    for cond in conds:
        outcome = evaluate_condition(cond, values)
        if outcome is None or outcome:
            return True
    return False


def is_component_visible(component: Component, values: Mapping[str, Any]) -> bool:
    """Component-level wrapper over ``is_visible``."""
    return is_visible(component.visibility_conditions, values)


def branch_condition_matches(conditions: Iterable[Condition], values: Mapping[str, Any]) -> bool:
    """Return True if every condition of a branch holds.

    A malformed condition never matches, so the branch is skipped.
    """
    conds = list(conditions or [])
    if not conds:
        return False
    for cond in conds:
        outcome = evaluate_condition(cond, values)
        if not outcome:
            return False
    return True


__all__ = [
    "normalize_operator",
    "compare",
    "evaluate_condition",
    "is_visible",
    "is_component_visible",
    "branch_condition_matches",
]
