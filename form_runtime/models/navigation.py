"""Navigation state and transition result models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NavigationState(_Wire):
    """Current page plus the stack of pages actually visited."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    current_page_id: Optional[str]
    history: List[str] = Field(default_factory=list)


class LogicalPageEntry(_Wire):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    page_id: str
    logical_index: int


class PageGraphDiagnostics(_Wire):
    dangling_targets: List[Dict[str, str]] = Field(default_factory=list)
    fallback_pages: List[str] = Field(default_factory=list)
    duplicate_page_ids: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.dangling_targets or self.fallback_pages or self.duplicate_page_ids)


class PageChangeEvent(_Wire):
    page_id: str
    page_index: int
    page_title: str
    total_pages: int
    is_first_page: bool
    is_last_page: bool
    is_end_page: bool
    is_confirmation_page: bool
    previous_page_id: Optional[str] = None
    previous_page_index: Optional[int] = None


class SubmitResult(_Wire):
    submission_id: str
    form_id: Optional[str] = None
    values: Dict[str, Any] = Field(default_factory=dict)
    page_path: List[str] = Field(default_factory=list)
    submitted_at: datetime
    thank_you: Optional[Dict[str, Any]] = None


class Transition(_Wire):
    """Outcome of a navigation request.

    ``kind`` is ``moved`` when the current page changed, ``blocked`` when
    validation kept the user in place, ``submitted`` when the flow ended, and
    ``unchanged`` for a retreat at the first page.
    """

    kind: Literal["moved", "blocked", "submitted", "unchanged"]
    state: NavigationState
    errors: Dict[str, List[str]] = Field(default_factory=dict)
    submission: Optional[SubmitResult] = None
    page_change: Optional[PageChangeEvent] = None


__all__ = [
    "NavigationState",
    "LogicalPageEntry",
    "PageGraphDiagnostics",
    "PageChangeEvent",
    "SubmitResult",
    "Transition",
]
