"""Display gating (any condition) versus branch matching (all conditions)."""

from __future__ import annotations

import pytest

from form_runtime.errors import ConfigurationError
from form_runtime.logic.visibility_rules import (
    branch_condition_matches,
    compare,
    is_component_visible,
    is_visible,
    normalize_operator,
)
from form_runtime.models.form_definition import Component, Condition


def _conds(*specs):
    return [Condition(field=f, operator=op, value=v) for f, op, v in specs]


def test_no_conditions_is_visible():
    assert is_visible(None, {})
    assert is_visible([], {})


def test_display_uses_any_while_branch_uses_all():
    conditions = _conds(("a", "==", "yes"), ("b", "==", "yes"))
    values = {"a": "yes", "b": "no"}
    assert is_visible(conditions, values) is True
    assert branch_condition_matches(conditions, values) is False
    assert branch_condition_matches(conditions, {"a": "yes", "b": "yes"}) is True


def test_empty_branch_condition_list_never_matches():
    assert branch_condition_matches([], {}) is False


@pytest.mark.parametrize(
    "field_value, operator, condition_value, expected",
    [
        (True, "==", "true", True),
        ("TRUE", "==", True, False),
        (5.0, "==", "5", True),
        (None, "==", "", True),
        ("x", "notEquals", "y", True),
        ("10", "greaterThan", 9, True),
        ("abc", ">", 1, False),
        ("", "<", 1, False),
        (3, "lessThan", "3", False),
        (3, "<=", "3", True),
        (4, ">=", 5, False),
    ],
)
def test_operator_semantics(field_value, operator, condition_value, expected):
    assert compare(normalize_operator(operator), field_value, condition_value) is expected


def test_unknown_operator_shows_component_but_never_matches_branch(caplog):
    conditions = _conds(("a", "contains", "x"))
    assert is_visible(conditions, {"a": "y"}) is True
    assert branch_condition_matches(conditions, {"a": "x"}) is False
    assert "condition_operator_unknown" in caplog.text


def test_normalize_operator_rejects_unknown():
    with pytest.raises(ConfigurationError) as exc:
        normalize_operator("~=")
    assert exc.value.code == "CONDITION_OPERATOR_UNKNOWN"


def test_component_wrapper_reads_visibility_conditions():
    component = Component.model_validate(
        {
            "id": "details",
            "type": "input",
            "visibilityConditions": [{"field": "hasDetails", "operator": "==", "value": True}],
        }
    )
    assert is_component_visible(component, {"hasDetails": True})
    assert not is_component_visible(component, {"hasDetails": False})
    assert not is_component_visible(component, {})
