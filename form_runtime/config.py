"""Configuration utilities for the form runtime.

This module loads runtime configuration with the following rules:
- Primary source: `form_runtime_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_RUNTIME_CONFIG = Path("form_runtime_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: an unreadable override falls through to the next source
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class ExpressionConfigSettings(BaseModel):
    debounce_ms: int = Field(default=100, ge=0)
    cache_size: int = Field(default=500, gt=0)


class TemplateSettings(BaseModel):
    empty_placeholder: str = Field(default="-")
    cache_timeout_ms: int = Field(default=1000, ge=0)

    @field_validator("empty_placeholder")
    @classmethod
    def placeholder_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v:
            raise ValueError("templates.empty_placeholder must be a non-empty string")
        return v


class SessionSettings(BaseModel):
    max_sessions: int = Field(default=1000, gt=0)


class EventSettings(BaseModel):
    buffer_size: int = Field(default=1000, gt=0)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if str(v).upper() not in allowed:
            raise ValueError(f"logging.level must be one of {sorted(allowed)}")
        return str(v).upper()


class RuntimeConfig(BaseModel):
    expressions: ExpressionConfigSettings = Field(default_factory=ExpressionConfigSettings)
    templates: TemplateSettings = Field(default_factory=TemplateSettings)
    sessions: SessionSettings = Field(default_factory=SessionSettings)
    events: EventSettings = Field(default_factory=EventSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# (section, key, environment variable, default); config/ override files are named "<section>.<key>"
_SETTINGS = (
    ("expressions", "debounce_ms", "FORM_RUNTIME_DEBOUNCE_MS", "100"),
    ("expressions", "cache_size", "FORM_RUNTIME_EXPRESSION_CACHE_SIZE", "500"),
    ("templates", "empty_placeholder", "FORM_RUNTIME_TEMPLATE_PLACEHOLDER", "-"),
    ("templates", "cache_timeout_ms", "FORM_RUNTIME_TEMPLATE_CACHE_MS", "1000"),
    ("sessions", "max_sessions", "FORM_RUNTIME_MAX_SESSIONS", "1000"),
    ("events", "buffer_size", "FORM_RUNTIME_EVENT_BUFFER_SIZE", "1000"),
    ("logging", "level", "FORM_RUNTIME_LOG_LEVEL", "INFO"),
)

_INTEGER_SETTINGS = {"debounce_ms", "cache_size", "cache_timeout_ms", "max_sessions", "buffer_size"}


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _from_base(base: dict, section: str, key: str) -> Optional[str]:
    values = base.get(section)
    if not isinstance(values, dict) or values.get(key) is None:
        return None
    return str(values[key])


def _resolve(base: dict, section: str, key: str, env_key: str, default: str) -> str:
    text = _env(env_key) or _read_config_file(f"{section}.{key}") or _from_base(base, section, key) or default
    return str(text).strip()


def load_config() -> RuntimeConfig:
    """Load configuration with validation.

    Each setting is taken from the first source that provides it:
    1) Environment variables
    2) Text files in `config/` (optional)
    3) form_runtime_config.json at project root (primary base)
    4) Safe defaults

    A non-numeric override for an integer setting raises ``ValueError``; a
    value outside its range raises pydantic's ``ValidationError``.
    """
    base = _read_json_file(ROOT_RUNTIME_CONFIG)
    sections: Dict[str, Dict[str, Any]] = {}
    try:
        for section, key, env_key, default in _SETTINGS:
            text = _resolve(base, section, key, env_key, default)
            sections.setdefault(section, {})[key] = int(text) if key in _INTEGER_SETTINGS else text
        return RuntimeConfig.model_validate(sections)
    except PydanticValidationError as e:
        logger.error("Invalid runtime configuration: %s", e)
        raise
    except ValueError as e:
        logger.error("Invalid runtime configuration value: %s", e)
        raise


@lru_cache(maxsize=1)
def get_config() -> RuntimeConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()


__all__ = [
    "RuntimeConfig",
    "ExpressionConfigSettings",
    "TemplateSettings",
    "SessionSettings",
    "EventSettings",
    "LoggingSettings",
    "load_config",
    "get_config",
]
