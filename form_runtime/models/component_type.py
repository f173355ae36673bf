"""ComponentType enumeration for form definition nodes.

Values are the ``type`` tokens used in form definition JSON. Unknown tokens
are tolerated by the loader; ``ComponentType.parse`` returns None for them.
"""

from __future__ import annotations

from enum import Enum


class ComponentType(str, Enum):
    INPUT = "input"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    SECTION = "section"
    FORM = "form"
    ARRAY = "array"
    TEXT = "text"
    BUTTON = "button"
    TABLE = "table"
    HTML = "html"

    @classmethod
    def parse(cls, token: object) -> "ComponentType | None":
        try:
            return cls(str(token).strip().lower())
        except ValueError:
            return None


class ConditionOperator:
    """Operator spellings accepted in visibility and branch conditions.

    Each symbolic operator has a word alias; both resolve to the canonical
    symbol via ``OPERATOR_ALIASES``.
    """

    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="


OPERATOR_ALIASES = {
    "==": ConditionOperator.EQ,
    "equals": ConditionOperator.EQ,
    "!=": ConditionOperator.NE,
    "notEquals": ConditionOperator.NE,
    ">": ConditionOperator.GT,
    "greaterThan": ConditionOperator.GT,
    "<": ConditionOperator.LT,
    "lessThan": ConditionOperator.LT,
    ">=": ConditionOperator.GE,
    "<=": ConditionOperator.LE,
}


class ExpressionMode(str, Enum):
    VALUE = "value"
    VISIBILITY = "visibility"
    VALIDATION = "validation"
    DISABLED = "disabled"
    REQUIRED = "required"
    LABEL = "label"
    HELPER_TEXT = "helperText"


__all__ = ["ComponentType", "ConditionOperator", "OPERATOR_ALIASES", "ExpressionMode"]
