"""``{{token}}`` resolution chain, template functions and caching."""

from __future__ import annotations

import pytest

from form_builders import FakeClock

from form_runtime.logic.template_engine import TemplateEngine, camel_to_snake, render_template, resolve_variable
from form_runtime.models.expression import TemplateContext


@pytest.fixture
def engine(clock):
    return TemplateEngine(placeholder="-", cache_timeout_ms=1000, clock=clock)


def _ctx(form_values=None, calculated=None, metadata=None):
    return TemplateContext(form_values=form_values or {}, calculated_values=calculated or {}, metadata=metadata or {})


def test_nested_path_and_unknown_token():
    assert render_template("{{applicant.fullName}}", {"applicant": {"fullName": "Jo"}}) == "Jo"
    assert render_template("{{unknownField}}", {}) == "-"


@pytest.mark.parametrize(
    "token, values",
    [
        ("firstName", {"firstName": "Ana"}),
        ("FirstName", {"firstname": "Ana"}),
        ("firstName", {"first_name": "Ana"}),
        ("first_name", {"firstname": "Ana"}),
        ("first.name", {"firstname": "Ana"}),
        ("name", {"applicant_full_name": "Ana"}),
        ("applicantFullNameField", {"fullname": "Ana"}),
    ],
)
def test_lookup_chain(token, values):
    assert resolve_variable(token, _ctx(values)) == "Ana"


def test_blank_values_fall_through_to_later_lookups():
    ctx = _ctx({"first_name": "Ana", "firstName": ""})
    assert resolve_variable("firstName", ctx) == "Ana"


def test_calculated_values_and_metadata_take_precedence():
    ctx = _ctx({"total": 1}, calculated={"total": 2}, metadata={"formTitle": "Survey"})
    assert resolve_variable("total", ctx) == 2
    assert resolve_variable("formTitle", ctx) == "Survey"


def test_camel_to_snake():
    assert camel_to_snake("unitPriceCents") == "unit_price_cents"
    assert camel_to_snake("already_snake") == "already_snake"


@pytest.mark.parametrize(
    "value, shown",
    [
        (True, "Yes"),
        (False, "No"),
        ([1, 2, 3], "3"),
        ({}, "Empty"),
        ({"a": 1}, "1 property"),
        ({"a": 1, "b": 2}, "2 properties"),
        (12.0, "12"),
        (12.5, "12.5"),
        ("", "-"),
        (0, "0"),
    ],
)
def test_display(engine, value, shown):
    assert engine.display(value) == shown


def test_template_functions(engine):
    ctx = _ctx(
        {
            "items": [
                {"quantity": 2, "unitPrice": 5},
                {"lineTotal": 7.5},
                {"quantity": "", "unitPrice": 3},
            ],
            "scores": [1, 2, "3"],
            "tags": ["a", "", None, "b"],
            "amount": 1234.5,
        }
    )
    assert engine.render("{{length(items)}}", ctx) == "3"
    assert engine.render("{{sum(scores)}}", ctx) == "6"
    assert engine.render("{{sumLineTotal(items)}}", ctx) == "17.5"
    assert engine.render("{{count(tags)}}", ctx) == "2"
    assert engine.render("{{format(amount, 'currency')}}", ctx) == "$1,234.50"
    assert engine.render("{{format(1234.5678, 'number')}}", ctx) == "1,234.568"
    assert engine.render("{{format(12.5, 'percent')}}", ctx) == "12.5%"
    assert engine.render("{{nope(items)}}", ctx) == "-"


def test_render_mixed_text(engine):
    ctx = _ctx({"name": "Jo", "items": [1, 2]})
    assert engine.render("Hi {{ name }}, you have {{items}} items{{missing}}", ctx) == "Hi Jo, you have 2 items-"
    assert engine.render("no tokens", ctx) == "no tokens"
    assert engine.render("", ctx) == ""
    assert engine.render(None, ctx) == ""


def test_extract_tokens(engine):
    assert engine.extract_tokens("{{a}} and {{ sum(b) }}") == ["a", "sum(b)"]


def test_render_cache_expires(engine, clock: FakeClock):
    ctx = _ctx({"name": "Jo"})
    assert engine.render("{{name}}", ctx) == "Jo"
    assert engine.cache_stats()["size"] == 1
    engine.placeholder = "?"
    assert engine.render("{{name}} {{x}}", ctx) == "Jo ?"
    clock.advance(500)
    engine.placeholder = "#"
    assert engine.render("{{name}} {{x}}", ctx) == "Jo ?"
    clock.advance(1000)
    assert engine.render("{{name}} {{x}}", ctx) == "Jo #"
    engine.clear_cache()
    assert engine.cache_stats()["size"] == 0
