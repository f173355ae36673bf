"""Page validation over a nested component tree.

Walks a page depth-first and collects field-scoped error lists. Components
hidden by their static visibility conditions or by a dynamic visibility
override are skipped together with everything nested under them. Section and
form containers prefix child keys with their own id (``parent.child``);
array items are keyed ``array[index].child``.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional
import logging

from form_runtime.logic.component_kinds import kind_for
from form_runtime.logic.field_rules import ValidationErrors, ValidationScope
from form_runtime.logic.visibility_rules import is_component_visible
from form_runtime.models.expression import FieldExpressionState
from form_runtime.models.form_definition import Component, Page

logger = logging.getLogger(__name__)


def is_in_scope(component: Component, scope: ValidationScope) -> bool:
    """True when the component is currently displayed and must be validated."""
    override = scope.override_for(component)
    if override is not None and not override.visible:
        return False
    return is_component_visible(component, scope.values)


def _walk(
    components: Iterable[Component],
    scope: ValidationScope,
    parent_path: Optional[str],
    errors: ValidationErrors,
) -> None:
    for component in components or []:
        if not is_in_scope(component, scope):
            continue
        field_path = f"{parent_path}.{component.id}" if parent_path else component.id
        kind_for(component).validate(component, scope, field_path, errors, _walk)


def validate_components(
    components: Iterable[Component],
    values: Mapping[str, Any],
    overrides: Optional[Mapping[str, FieldExpressionState]] = None,
) -> ValidationErrors:
    errors: ValidationErrors = {}
    _walk(components, ValidationScope(values=values, overrides=overrides or {}), None, errors)
    return errors


def validate_page(
    page: Page,
    values: Mapping[str, Any],
    overrides: Optional[Mapping[str, FieldExpressionState]] = None,
) -> ValidationErrors:
    """Validate every visible component on a page.

    ``overrides`` carries dynamic expression state keyed by field id
    (visibility, required and validation modes). Returns an empty mapping
    when the page is valid.
    """
    errors = validate_components(page.components, values, overrides)
    if errors:
        logger.info("validation_failed page=%s fields=%s", page.id, sorted(errors))
    return errors


def is_page_valid(
    page: Page,
    values: Mapping[str, Any],
    overrides: Optional[Mapping[str, FieldExpressionState]] = None,
) -> bool:
    return not validate_page(page, values, overrides)


__all__ = ["ValidationErrors", "is_in_scope", "validate_components", "validate_page", "is_page_valid"]
