"""Recursive page validation over nested component trees."""

from __future__ import annotations

import logging

import pytest

from form_builders import field

from form_runtime.logic.validation import is_page_valid, validate_components, validate_page
from form_runtime.models.component_type import ExpressionMode
from form_runtime.models.expression import FieldExpressionState
from form_runtime.models.form_definition import Component, Page


def _page(*components):
    return Page.model_validate({"id": "p", "components": list(components)})


def _one(component, value):
    return validate_components([Component.model_validate(component)], {component["id"]: value})


def test_required_and_pattern_on_empty_value_yield_one_error():
    errors = _one(field("code", validation={"required": True, "pattern": "^[A-Z]{3}$"}), "")
    assert errors == {"code": ["This field is required"]}


def test_optional_empty_field_skips_every_rule():
    assert _one(field("code", validation={"minLength": 3, "pattern": "^x$"}), "") == {}


@pytest.mark.parametrize(
    "component, value, message",
    [
        (field("e", props={"inputType": "email"}), "not-an-email", "Please enter a valid email address"),
        (field("u", props={"inputType": "url"}), "nope", "Please enter a valid URL"),
        (field("n", props={"inputType": "number"}), "12a", "Please enter a valid number"),
        (field("t", validation={"minLength": 3}), "ab", "Minimum length is 3 characters"),
        (field("t", "textarea", validation={"maxLength": 2}), "abc", "Maximum length is 2 characters"),
        (field("t", validation={"pattern": "^\\d+$"}), "12x", "Invalid format"),
        (field("n", validation={"min": 10}), "9", "Value must be at least 10"),
        (field("n", validation={"max": 2.5}), 3, "Value must be at most 2.5"),
        (field("d", "date"), "31/01/2024", "Invalid date format"),
        (field("d", "date", validation={"minDate": "2024-01-01"}), "2023-12-31", "Date must be after 2024-01-01"),
        (field("d", "date", props={"maxDate": "2024-01-01"}), "2024-02-01", "Date must be before 2024-01-01"),
    ],
)
def test_rule_failures(component, value, message):
    assert _one(component, value) == {component["id"]: [message]}


def test_first_failing_rule_wins():
    component = field("e", props={"inputType": "email"}, validation={"minLength": 50})
    assert _one(component, "bad") == {"e": ["Please enter a valid email address"]}


def test_error_messages_override_defaults():
    component = field("t", validation={"required": True, "errorMessages": {"required": "Tell us your name"}})
    assert _one(component, None) == {"t": ["Tell us your name"]}


def test_invalid_regex_is_logged_and_skipped(caplog):
    with caplog.at_level(logging.WARNING):
        errors = _one(field("t", validation={"pattern": "(unclosed"}), "anything")
    assert errors == {}
    assert "validation_pattern_invalid" in caplog.text


def test_required_checkbox_must_be_checked():
    component = field("agree", "checkbox", validation={"required": True})
    assert _one(component, False) == {"agree": ["This field is required"]}
    assert _one(component, "false") == {"agree": ["This field is required"]}
    assert _one(component, True) == {}


def test_hidden_components_and_their_children_are_skipped():
    page = _page(
        field("toggle", "checkbox"),
        {
            "id": "extra",
            "type": "section",
            "visibilityConditions": [{"field": "toggle", "operator": "==", "value": True}],
            "children": [field("detail", validation={"required": True})],
        },
    )
    assert validate_page(page, {"toggle": False}) == {}
    assert validate_page(page, {"toggle": True}) == {"extra.detail": ["This field is required"]}


def test_nested_containers_build_dotted_paths():
    page = _page(
        {
            "id": "outer",
            "type": "form",
            "children": [{"id": "inner", "type": "section", "children": [field("name", validation={"required": True})]}],
        }
    )
    assert validate_page(page, {}) == {"outer.inner.name": ["This field is required"]}


def _array(**validation):
    return {
        "id": "items",
        "type": "array",
        "validation": validation,
        "arrayItems": [{"id": "item", "components": [field("name", validation={"required": True}), field("qty")]}],
    }


def test_array_min_items_reports_cardinality_and_validates_existing_items():
    page = _page(_array(minItems=2))
    errors = validate_page(page, {"items": [{"name": "", "qty": "1"}]})
    assert errors == {
        "items": ["Minimum 2 items required"],
        "items[0].name": ["This field is required"],
    }


def test_array_max_items():
    page = _page(_array(maxItems=1))
    errors = validate_page(page, {"items": [{"name": "a"}, {"name": "b"}]})
    assert errors == {"items": ["Maximum 1 items allowed"]}


def test_required_array_with_no_items_stops_there():
    page = _page(_array(required=True, minItems=2))
    assert validate_page(page, {"items": []}) == {"items": ["This field is required"]}


def test_array_items_are_validated_in_their_own_scope():
    page = _page(_array())
    values = {"name": "top-level value must not leak", "items": [{"name": "a"}, {"name": ""}]}
    assert validate_page(page, values) == {"items[1].name": ["This field is required"]}


def test_presentational_and_unknown_types_are_ignored():
    page = _page({"id": "intro", "type": "text"}, {"id": "w", "type": "widget", "validation": {"required": True}})
    assert is_page_valid(page, {})


def test_dynamic_overrides_hide_require_and_fail_fields():
    page = _page(field("a"), field("b", validation={"required": True}), field("c"))
    overrides = {
        "a": FieldExpressionState(field_id="a", mode=ExpressionMode.REQUIRED, required=True),
        "b": FieldExpressionState(field_id="b", mode=ExpressionMode.VISIBILITY, visible=False),
        "c": FieldExpressionState(field_id="c", mode=ExpressionMode.VALIDATION, validation_error="Too small"),
    }
    errors = validate_page(page, {"c": "1"}, overrides)
    assert errors == {"a": ["This field is required"], "c": ["Too small"]}
