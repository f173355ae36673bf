"""Runtime configuration precedence and validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from form_runtime import config


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in (
        "FORM_RUNTIME_DEBOUNCE_MS",
        "FORM_RUNTIME_EXPRESSION_CACHE_SIZE",
        "FORM_RUNTIME_TEMPLATE_PLACEHOLDER",
        "FORM_RUNTIME_TEMPLATE_CACHE_MS",
        "FORM_RUNTIME_MAX_SESSIONS",
        "FORM_RUNTIME_LOG_LEVEL",
        "FORM_RUNTIME_EVENT_BUFFER_SIZE",
    ):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def test_defaults(isolated):
    cfg = config.load_config()
    assert cfg.expressions.debounce_ms == 100
    assert cfg.expressions.cache_size == 500
    assert cfg.templates.empty_placeholder == "-"
    assert cfg.templates.cache_timeout_ms == 1000
    assert cfg.sessions.max_sessions == 1000
    assert cfg.logging.level == "INFO"
    assert cfg.events.buffer_size == 1000


def test_env_beats_config_dir_beats_json(isolated, monkeypatch):
    (isolated / "form_runtime_config.json").write_text(
        json.dumps({"expressions": {"debounce_ms": 10, "cache_size": 20}, "logging": {"level": "debug"}}),
        encoding="utf-8",
    )
    (isolated / "config").mkdir()
    (isolated / "config" / "expressions.debounce_ms").write_text("30\n", encoding="utf-8")
    monkeypatch.setenv("FORM_RUNTIME_EXPRESSION_CACHE_SIZE", "40")
    cfg = config.load_config()
    assert cfg.expressions.debounce_ms == 30
    assert cfg.expressions.cache_size == 40
    assert cfg.logging.level == "DEBUG"


def test_invalid_values_raise(isolated, monkeypatch):
    monkeypatch.setenv("FORM_RUNTIME_DEBOUNCE_MS", "-5")
    with pytest.raises(ValidationError):
        config.load_config()
    monkeypatch.setenv("FORM_RUNTIME_DEBOUNCE_MS", "soon")
    with pytest.raises(ValueError):
        config.load_config()
