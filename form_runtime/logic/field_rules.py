"""Per-field validation rules.

Each rule returns an error message or None. ``check_field_value`` applies the
rules in a fixed order and stops at the first failure:

required -> type format -> minLength/maxLength -> pattern -> numeric
min/max -> date parse and min/max.

Malformed rule configuration (bad regex, unparseable date bounds) is logged
and the rule is skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse
import logging
import math
import re

from form_runtime.errors import ConfigurationError
from form_runtime.logic.value_canonical import canonical_string, is_blank, to_number
from form_runtime.models.component_type import ComponentType
from form_runtime.models.expression import FieldExpressionState
from form_runtime.models.form_definition import Component, ValidationRules

logger = logging.getLogger(__name__)

ValidationErrors = Dict[str, List[str]]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_MESSAGES: Dict[str, str] = {
    "required": "This field is required",
    "invalidEmail": "Please enter a valid email address",
    "invalidUrl": "Please enter a valid URL",
    "invalidNumber": "Please enter a valid number",
    "invalidDate": "Invalid date format",
    "minLength": "Minimum length is {minLength} characters",
    "maxLength": "Maximum length is {maxLength} characters",
    "pattern": "Invalid format",
    "min": "Value must be at least {min}",
    "max": "Value must be at most {max}",
    "minDate": "Date must be after {minDate}",
    "maxDate": "Date must be before {maxDate}",
    "minItems": "Minimum {minItems} items required",
    "maxItems": "Maximum {maxItems} items allowed",
    "expression": "Validation failed",
}

_TEXT_KINDS = {ComponentType.INPUT, ComponentType.TEXTAREA}


@dataclass
class ValidationScope:
    """Values a component tree is validated against.

    Array items get a child scope whose values are the item's own record;
    dynamic expression overrides stay shared with the enclosing scope.
    """

    values: Mapping[str, Any]
    overrides: Mapping[str, FieldExpressionState] = field(default_factory=dict)

    def child(self, values: Mapping[str, Any]) -> "ValidationScope":
        return ValidationScope(values=values, overrides=self.overrides)

    def override_for(self, component: Component) -> Optional[FieldExpressionState]:
        return self.overrides.get(component.id)


def add_error(errors: ValidationErrors, field_path: str, message: str) -> None:
    errors.setdefault(field_path, []).append(message)


def message_for(rules: ValidationRules, key: str, **params: Any) -> str:
    """Return the configured or default message for a rule key."""
    template = (rules.error_messages or {}).get(key) or DEFAULT_MESSAGES.get(key) or DEFAULT_MESSAGES["pattern"]
    for name, value in params.items():
        template = template.replace("{" + name + "}", canonical_string(value))
    return template


def _input_type(component: Component) -> str:
    return str((component.props or {}).get("inputType") or "").strip().lower()


def _is_date_field(component: Component) -> bool:
    return component.kind == ComponentType.DATE or _input_type(component) == "date"


def check_required(rules: ValidationRules, value: Any, required: bool) -> Optional[str]:
    if required and is_blank(value):
        return message_for(rules, "required")
    return None


def check_format(component: Component, rules: ValidationRules, value: Any) -> Optional[str]:
    input_type = _input_type(component)
    if input_type == "email":
        if not EMAIL_PATTERN.match(canonical_string(value)):
            return message_for(rules, "invalidEmail")
    elif input_type == "url":
        parsed = urlparse(canonical_string(value).strip())
        if not parsed.scheme or not (parsed.netloc or parsed.path):
            return message_for(rules, "invalidUrl")
    elif input_type == "number":
        if math.isnan(to_number(value)):
            return message_for(rules, "invalidNumber")
    return None


def check_length(component: Component, rules: ValidationRules, value: Any) -> Optional[str]:
    if component.kind not in _TEXT_KINDS or isinstance(value, (list, dict)):
        return None
    text = canonical_string(value)
    if rules.min_length is not None and len(text) < rules.min_length:
        return message_for(rules, "minLength", minLength=rules.min_length)
    if rules.max_length is not None and len(text) > rules.max_length:
        return message_for(rules, "maxLength", maxLength=rules.max_length)
    return None


def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"invalid validation pattern {pattern!r}: {e}", code="VALIDATION_PATTERN_INVALID") from e


def check_pattern(component: Component, rules: ValidationRules, value: Any) -> Optional[str]:
    if not rules.pattern or component.kind not in _TEXT_KINDS:
        return None
    try:
        regex = compile_pattern(rules.pattern)
    except ConfigurationError:
        logger.warning("validation_pattern_invalid field=%s pattern=%r", component.id, rules.pattern)
        return None
    if not regex.search(canonical_string(value)):
        return message_for(rules, "pattern")
    return None


def check_numeric_range(rules: ValidationRules, value: Any) -> Optional[str]:
    if rules.min is None and rules.max is None:
        return None
    number = to_number(value)
    if math.isnan(number):
        return None
    if rules.min is not None and number < rules.min:
        return message_for(rules, "min", min=rules.min)
    if rules.max is not None and number > rules.max:
        return message_for(rules, "max", max=rules.max)
    return None


def parse_date(value: Any) -> Optional[datetime]:
    """Parse ISO dates/datetimes; None when unparseable. Timezones are dropped."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = canonical_string(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _date_bound(component: Component, raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    bound = parse_date(raw)
    if bound is None:
        logger.warning("validation_date_bound_invalid field=%s bound=%r", component.id, raw)
    return bound


def check_date(component: Component, rules: ValidationRules, value: Any) -> Optional[str]:
    if not _is_date_field(component):
        return None
    parsed = parse_date(value)
    if parsed is None:
        return message_for(rules, "invalidDate")
    props = component.props or {}
    min_raw = rules.min_date or props.get("minDate")
    max_raw = rules.max_date or props.get("maxDate")
    min_date = _date_bound(component, min_raw)
    if min_date is not None and parsed < min_date:
        return message_for(rules, "minDate", minDate=min_raw)
    max_date = _date_bound(component, max_raw)
    if max_date is not None and parsed > max_date:
        return message_for(rules, "maxDate", maxDate=max_raw)
    return None


def effective_required(component: Component, override: Optional[FieldExpressionState]) -> bool:
    if override is not None and override.required is not None:
        return bool(override.required)
    return bool(component.rules().required)


def check_field_value(
    component: Component,
    value: Any,
    override: Optional[FieldExpressionState] = None,
) -> Optional[str]:
    """Run the rule chain for a single value field; first failure wins."""
    rules = component.rules()
    required = effective_required(component, override)
    if is_blank(value):
        return check_required(rules, value, required)
    for rule in (
        lambda: check_format(component, rules, value),
        lambda: check_length(component, rules, value),
        lambda: check_pattern(component, rules, value),
        lambda: check_numeric_range(rules, value),
        lambda: check_date(component, rules, value),
    ):
        error = rule()
        if error:
            return error
    if override is not None and override.validation_error:
        return override.validation_error
    return None


def check_checkbox_value(
    component: Component,
    value: Any,
    override: Optional[FieldExpressionState] = None,
) -> Optional[str]:
    """A required checkbox must be checked, not merely present."""
    rules = component.rules()
    if effective_required(component, override) and canonical_string(value) != "true":
        return message_for(rules, "required")
    if override is not None and override.validation_error:
        return override.validation_error
    return None


__all__ = [
    "ValidationErrors",
    "ValidationScope",
    "DEFAULT_MESSAGES",
    "add_error",
    "message_for",
    "check_required",
    "check_format",
    "check_length",
    "compile_pattern",
    "check_pattern",
    "check_numeric_range",
    "parse_date",
    "check_date",
    "effective_required",
    "check_field_value",
    "check_checkbox_value",
]
