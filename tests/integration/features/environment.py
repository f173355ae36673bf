"""Behave environment hooks for form runtime integration scenarios.

Scenarios talk HTTP through an ``httpx`` client. When ``TEST_BASE_URL`` is
set they target that running service; otherwise the app is built in-process
and driven through FastAPI's TestClient (itself an ``httpx`` client). Every
scenario starts from a clean service via the test-support reset endpoint.
"""

from __future__ import annotations

import os
from typing import Any

import httpx


def _in_process_client() -> httpx.Client:
    from fastapi.testclient import TestClient
    from form_runtime.main import create_app

    return TestClient(create_app())


def before_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    base_url = os.environ.get("TEST_BASE_URL", "").strip().rstrip("/")
    if base_url:
        context.client = httpx.Client(base_url=base_url, timeout=10.0)
        try:
            context.client.get("/health")
        except httpx.HTTPError as exc:
            raise AssertionError(f"API not reachable at TEST_BASE_URL={base_url}: {exc}")
    else:
        context.client = _in_process_client()
    context.api = "/api/v1"


def before_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    resp = context.client.post("/__test__/reset-state")
    assert resp.status_code == 204, f"reset-state failed: {resp.status_code} {resp.text}"
    context.vars = {}
    context.response = None


def after_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    client = getattr(context, "client", None)
    if client is not None:
        client.close()
