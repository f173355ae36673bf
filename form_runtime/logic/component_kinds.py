"""Dispatch table of component kinds.

Each ``ComponentType`` maps to a ``ComponentKind`` carrying the hooks the
engine needs for that variant: whether it holds a value, how its nested
components are reached, and how it is validated. Unknown types resolve to
the presentational kind.

Validation hooks receive a ``walk`` callback used to descend into nested
component lists, keeping the recursive walker in ``validation.py``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from form_runtime.logic.field_rules import (
    ValidationErrors,
    ValidationScope,
    add_error,
    check_checkbox_value,
    check_field_value,
    effective_required,
    message_for,
)
from form_runtime.models.component_type import ComponentType
from form_runtime.models.form_definition import Component

Walk = Callable[[Iterable[Component], ValidationScope, Optional[str], ValidationErrors], None]
ValidateHook = Callable[[Component, ValidationScope, str, ValidationErrors, Walk], None]


@dataclass(frozen=True)
class ComponentKind:
    name: str
    collects_value: bool
    container: bool
    validate: ValidateHook


def _validate_nothing(component, scope, field_path, errors, walk) -> None:
    return None


def _validate_field(component, scope, field_path, errors, walk) -> None:
    error = check_field_value(component, scope.values.get(component.id), scope.override_for(component))
    if error:
        add_error(errors, field_path, error)


def _validate_checkbox(component, scope, field_path, errors, walk) -> None:
    error = check_checkbox_value(component, scope.values.get(component.id), scope.override_for(component))
    if error:
        add_error(errors, field_path, error)


def _validate_container(component, scope, field_path, errors, walk) -> None:
    walk(component.children or [], scope, field_path, errors)


def _validate_array(component, scope, field_path, errors, walk) -> None:
    """Required first, then cardinality, then each existing item in its own scope."""
    rules = component.rules()
    raw = scope.values.get(component.id)
    items = raw if isinstance(raw, list) else []
    override = scope.override_for(component)

    if effective_required(component, override) and not items:
        add_error(errors, field_path, message_for(rules, "required"))
        return
    if rules.min_items is not None and len(items) < rules.min_items:
        add_error(errors, field_path, message_for(rules, "minItems", minItems=rules.min_items))
    elif rules.max_items is not None and len(items) > rules.max_items:
        add_error(errors, field_path, message_for(rules, "maxItems", maxItems=rules.max_items))
    if override is not None and override.validation_error:
        add_error(errors, field_path, override.validation_error)

    for index, item in enumerate(items):
        item_scope = scope.child(item if isinstance(item, dict) else {})
        for template in component.array_items or []:
            walk(template.components, item_scope, f"{field_path}[{index}]", errors)


PRESENTATIONAL = ComponentKind("presentational", collects_value=False, container=False, validate=_validate_nothing)

KINDS: Dict[ComponentType, ComponentKind] = {
    ComponentType.INPUT: ComponentKind("input", True, False, _validate_field),
    ComponentType.TEXTAREA: ComponentKind("textarea", True, False, _validate_field),
    ComponentType.SELECT: ComponentKind("select", True, False, _validate_field),
    ComponentType.RADIO: ComponentKind("radio", True, False, _validate_field),
    ComponentType.DATE: ComponentKind("date", True, False, _validate_field),
    ComponentType.CHECKBOX: ComponentKind("checkbox", True, False, _validate_checkbox),
    ComponentType.SECTION: ComponentKind("section", False, True, _validate_container),
    ComponentType.FORM: ComponentKind("form", False, True, _validate_container),
    ComponentType.ARRAY: ComponentKind("array", True, False, _validate_array),
    ComponentType.TEXT: PRESENTATIONAL,
    ComponentType.BUTTON: PRESENTATIONAL,
    ComponentType.TABLE: PRESENTATIONAL,
    ComponentType.HTML: PRESENTATIONAL,
}


def kind_for(component: Component) -> ComponentKind:
    kind = component.kind
    if kind is None:
        return PRESENTATIONAL
    return KINDS.get(kind, PRESENTATIONAL)


def iter_components(components: Iterable[Component], include_array_items: bool = False) -> Iterator[Component]:
    """Depth-first walk over a component tree.

    Array item templates are only entered when ``include_array_items`` is set;
    their ids are item-scoped rather than form-scoped.
    """
    for component in components or []:
        yield component
        if kind_for(component).container:
            yield from iter_components(component.children or [], include_array_items)
        if include_array_items and component.kind == ComponentType.ARRAY:
            for template in component.array_items or []:
                yield from iter_components(template.components, include_array_items)


def value_fields(components: Iterable[Component]) -> List[Component]:
    """Form-scoped components that hold a value in the flat value map."""
    return [c for c in iter_components(components) if kind_for(c).collects_value]


__all__ = [
    "ComponentKind",
    "KINDS",
    "PRESENTATIONAL",
    "kind_for",
    "iter_components",
    "value_fields",
]
