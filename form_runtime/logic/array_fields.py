"""Repeatable item collections for ``array`` components.

Each array field owns an ordered list of item records. Every mutation
returns the whole re-projected list; callers write it into the flat value
map under the array field's id, so validation and expressions see the
collection as one value. Item child paths are ``<array>[<index>].<child>``
and shift down after a removal.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import copy
import logging

from form_runtime.errors import UserInputError
from form_runtime.logic.component_kinds import iter_components, value_fields
from form_runtime.models.component_type import ComponentType
from form_runtime.models.form_definition import Component, FormDefinition

logger = logging.getLogger(__name__)

ItemRecord = Dict[str, Any]


def item_field_path(array_id: str, index: int, child_id: str) -> str:
    return f"{array_id}[{index}].{child_id}"


def template_child_ids(component: Component) -> List[str]:
    """Ids of the value-holding components declared in the array's item templates."""
    ids: List[str] = []
    for template in component.array_items or []:
        for child in value_fields(template.components):
            if child.id not in ids:
                ids.append(child.id)
    return ids


class ArrayFieldManager:
    def __init__(self, arrays: Mapping[str, Component]):
        self._arrays: Dict[str, Component] = dict(arrays)
        self._items: Dict[str, List[ItemRecord]] = {array_id: [] for array_id in self._arrays}

    @classmethod
    def from_definition(cls, definition: FormDefinition) -> "ArrayFieldManager":
        arrays: Dict[str, Component] = {}
        for page in definition.pages:
            for component in iter_components(page.components):
                if component.kind == ComponentType.ARRAY:
                    arrays.setdefault(component.id, component)
        return cls(arrays)

    def array_ids(self) -> List[str]:
        return list(self._arrays)

    def is_array(self, field_id: str) -> bool:
        return field_id in self._arrays

    def _require(self, array_id: str) -> List[ItemRecord]:
        if array_id not in self._arrays:
            raise UserInputError(f"unknown array field {array_id!r}", code="FIELD_NOT_FOUND")
        return self._items[array_id]

    def _check_index(self, array_id: str, items: List[ItemRecord], index: int) -> None:
        if not 0 <= index < len(items):
            raise UserInputError(
                f"item index {index} out of range for {array_id!r} ({len(items)} items)",
                code="ARRAY_INDEX_INVALID",
            )

    def items(self, array_id: str) -> List[ItemRecord]:
        return copy.deepcopy(self._require(array_id))

    def new_item(self, array_id: str) -> ItemRecord:
        self._require(array_id)
        return {child_id: "" for child_id in template_child_ids(self._arrays[array_id])}

    def add_item(self, array_id: str, initial: Optional[Mapping[str, Any]] = None) -> List[ItemRecord]:
        items = self._require(array_id)
        record = self.new_item(array_id)
        record.update(initial or {})
        items.append(record)
        logger.info("array_item_added array=%s count=%s", array_id, len(items))
        return self.items(array_id)

    def remove_item(self, array_id: str, index: int) -> List[ItemRecord]:
        items = self._require(array_id)
        self._check_index(array_id, items, index)
        del items[index]
        logger.info("array_item_removed array=%s index=%s count=%s", array_id, index, len(items))
        return self.items(array_id)

    def update_item(self, array_id: str, index: int, child_id: str, value: Any) -> List[ItemRecord]:
        items = self._require(array_id)
        self._check_index(array_id, items, index)
        if child_id not in template_child_ids(self._arrays[array_id]):
            raise UserInputError(
                f"{child_id!r} is not part of the {array_id!r} item template",
                code="FIELD_NOT_FOUND",
            )
        items[index][child_id] = value
        return self.items(array_id)

    def replace(self, array_id: str, value: Any) -> List[ItemRecord]:
        """Adopt a whole list written directly to the array field."""
        items = self._require(array_id)
        if value is None or value == "":
            value = []
        if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
            raise UserInputError(f"array field {array_id!r} expects a list of objects")
        items[:] = copy.deepcopy(value)
        return self.items(array_id)

    def clear(self) -> None:
        for items in self._items.values():
            items.clear()

    def item_paths(self, array_id: str) -> List[str]:
        """Current child paths for every item, in index order."""
        items = self._require(array_id)
        children = template_child_ids(self._arrays[array_id])
        return [item_field_path(array_id, i, child) for i in range(len(items)) for child in children]


__all__ = ["ItemRecord", "item_field_path", "template_child_ids", "ArrayFieldManager"]
