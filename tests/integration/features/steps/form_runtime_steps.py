"""Step definitions for form runtime integration scenarios."""

from __future__ import annotations

import json
from typing import Any, Dict

from behave import given, then, when

FORMS: Dict[str, Dict[str, Any]] = {
    "plans": {
        "app": {
            "title": "Plans",
            "pages": [
                {
                    "id": "choose",
                    "title": "Choose",
                    "components": [
                        {"id": "plan", "type": "select"},
                        {"id": "email", "type": "input", "validation": {"required": True}},
                    ],
                    "branches": [
                        {"condition": {"field": "plan", "operator": "==", "value": "basic"}, "nextPage": "basic"},
                        {"condition": {"field": "plan", "operator": "equals", "value": "pro"}, "nextPage": "pro"},
                    ],
                    "nextPage": "fallback",
                },
                {"id": "basic", "title": "Basic", "isEndPage": True},
                {"id": "pro", "title": "Pro", "isEndPage": True},
                {"id": "fallback", "title": "Fallback", "isEndPage": True},
            ],
        }
    },
    "calculator": {
        "app": {
            "title": "Calculator",
            "pages": [
                {
                    "id": "calc",
                    "components": [
                        {"id": "qty", "type": "input"},
                        {"id": "price", "type": "input"},
                        {
                            "id": "total",
                            "type": "input",
                            "expression": {"expression": "qty.value * price.value", "dependencies": ["qty", "price"]},
                        },
                    ],
                }
            ],
        }
    },
}


def _session_url(context, suffix: str = "") -> str:
    return f"{context.api}/sessions/{context.vars['session_id']}{suffix}"


def _snapshot(context) -> Dict[str, Any]:
    body = context.response.json()
    return body.get("session", body)


@given('the "{name}" form is loaded')
def step_load_form(context, name: str) -> None:
    resp = context.client.post(f"{context.api}/forms", json=FORMS[name])
    assert resp.status_code == 201, resp.text
    context.vars["form_id"] = resp.json()["formId"]


@given("a fill session is started")
def step_start_session(context) -> None:
    resp = context.client.post(f"{context.api}/forms/{context.vars['form_id']}/sessions")
    assert resp.status_code == 201, resp.text
    context.vars["session_id"] = resp.json()["sessionId"]
    context.response = resp


@when('I set "{field_id}" to "{value}"')
def step_set_value(context, field_id: str, value: str) -> None:
    context.response = context.client.put(_session_url(context, f"/values/{field_id}"), json={"value": value})
    assert context.response.status_code == 200, context.response.text


@when("I go to the next page")
def step_next(context) -> None:
    context.response = context.client.post(_session_url(context, "/next"))
    assert context.response.status_code == 200, context.response.text


@when("I go to the previous page")
def step_previous(context) -> None:
    context.response = context.client.post(_session_url(context, "/previous"))
    assert context.response.status_code == 200, context.response.text


@when("pending evaluations are flushed")
def step_flush(context) -> None:
    context.response = context.client.post(_session_url(context, "/expressions/flush"))
    assert context.response.status_code == 200, context.response.text


@when('I render the template "{template}" with values')
def step_render(context, template: str) -> None:
    payload = {"template": template, "formValues": json.loads(context.text)}
    context.response = context.client.post(f"{context.api}/templates/render", json=payload)
    assert context.response.status_code == 200, context.response.text


@then('the transition is "{kind}"')
def step_transition_kind(context, kind: str) -> None:
    assert context.response.json()["kind"] == kind, context.response.json()


@then('the current page is "{page_id}"')
def step_current_page(context, page_id: str) -> None:
    assert _snapshot(context)["navigation"]["currentPageId"] == page_id


@then('field "{field_id}" has the error "{message}"')
def step_field_error(context, field_id: str, message: str) -> None:
    assert message in context.response.json()["errors"].get(field_id, [])


@then('{count:d} submission is recorded with page path "{path}"')
def step_submission_recorded(context, count: int, path: str) -> None:
    records = context.client.get(f"{context.api}/submissions").json()["submissions"]
    assert len(records) == count
    assert records[-1]["pagePath"] == path.split(",")


@then('the value of "{field_id}" is {expected:d}')
def step_value_is(context, field_id: str, expected: int) -> None:
    assert _snapshot(context)["values"][field_id] == expected


@then('the rendered text is "{expected}"')
def step_rendered(context, expected: str) -> None:
    assert context.response.json()["rendered"] == expected
