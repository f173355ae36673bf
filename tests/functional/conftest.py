"""Functional test bootstrap.

Every test starts from empty in-memory stores and cold engine caches. The
HTTP client fixture builds a fresh app per test through ``create_app`` so no
app instance is shared at import time.
"""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def clean_runtime_state():
    from form_runtime.routes.test_support import reset_runtime_state

    reset_runtime_state()
    yield
    reset_runtime_state()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from form_runtime.main import create_app

    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def clock():
    from form_builders import FakeClock

    return FakeClock()
