"""Error taxonomy for the form runtime.

None of these are fatal to a form fill. Validation failures are reported as
data (``ValidationErrors``); the classes below are raised inside helpers and
caught at the nearest boundary that can degrade to "skip and continue".
"""

from __future__ import annotations


class FormRuntimeError(Exception):
    """Base class for runtime errors carrying a stable code token."""

    code = "FORM_RUNTIME_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class UserInputError(FormRuntimeError, ValueError):
    """Malformed input from the presentational layer (bad index, unknown field)."""

    code = "USER_INPUT_INVALID"


class ConfigurationError(FormRuntimeError, ValueError):
    """Malformed form definition content: bad regex, dangling page id, unknown operator."""

    code = "CONFIGURATION_INVALID"


class EvaluationError(FormRuntimeError):
    """An expression could not be parsed or evaluated."""

    code = "EXPRESSION_EVALUATION_FAILED"


__all__ = [
    "FormRuntimeError",
    "UserInputError",
    "ConfigurationError",
    "EvaluationError",
]
