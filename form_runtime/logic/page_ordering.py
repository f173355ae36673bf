"""Logical page ordering from declared transition edges.

Edges run from a page to each known target named by its ``nextPage`` and by
its branches. The order is Kahn's topological sort seeded with the pages that
have no incoming edge, in declared array order. Pages the sort never reaches
(cycles, or pages only reachable through a cycle) are appended in array
order, so every page appears exactly once and ordering never fails.

Orders are cached per definition object; definitions are immutable and are
replaced wholesale, so identity is a sufficient key.
"""

from __future__ import annotations

from collections import OrderedDict, deque
from typing import Dict, List, Optional, Tuple
import logging

from form_runtime.models.form_definition import FormDefinition, Page
from form_runtime.models.navigation import LogicalPageEntry, PageGraphDiagnostics

logger = logging.getLogger(__name__)

_CACHE_LIMIT = 128
_ORDER_CACHE: "OrderedDict[int, Tuple[FormDefinition, List[LogicalPageEntry]]]" = OrderedDict()


def declared_targets(page: Page) -> List[str]:
    """Every target id the page declares, branches first, in declared order."""
    targets = [branch.next_page for branch in page.branches or []]
    if page.next_page:
        targets.append(page.next_page)
    return targets


def _edges(definition: FormDefinition) -> Dict[str, List[str]]:
    known = {p.id for p in definition.pages}
    edges: Dict[str, List[str]] = {}
    for page in definition.pages:
        out = edges.setdefault(page.id, [])
        for target in declared_targets(page):
            if target in known and target not in out:
                out.append(target)
    return edges


def _compute_order(definition: FormDefinition) -> Tuple[List[LogicalPageEntry], List[str]]:
    pages = definition.pages
    # first declaration wins for duplicate ids
    ids: List[str] = []
    for page in pages:
        if page.id not in ids:
            ids.append(page.id)
    edges = _edges(definition)
    in_degree = {pid: 0 for pid in ids}
    for pid in ids:
        for target in edges.get(pid, []):
            in_degree[target] += 1

    queue = deque(pid for pid in ids if in_degree[pid] == 0)
    ordered: List[str] = []
    seen = set()
    while queue:
        pid = queue.popleft()
        if pid in seen:
            continue
        seen.add(pid)
        ordered.append(pid)
        for target in edges.get(pid, []):
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    fallback = [pid for pid in ids if pid not in seen]
    ordered.extend(fallback)
    entries = [LogicalPageEntry(page_id=pid, logical_index=i) for i, pid in enumerate(ordered)]
    return entries, fallback


def logical_order_of(definition: FormDefinition) -> List[LogicalPageEntry]:
    """Return the logical page order for a definition (cached)."""
    key = id(definition)
    cached = _ORDER_CACHE.get(key)
    if cached is not None and cached[0] is definition:
        _ORDER_CACHE.move_to_end(key)
        return list(cached[1])
    entries, fallback = _compute_order(definition)
    if fallback:
        logger.warning("page_order_fallback title=%s pages=%s", definition.app.title, fallback)
    _ORDER_CACHE[key] = (definition, entries)
    while len(_ORDER_CACHE) > _CACHE_LIMIT:
        _ORDER_CACHE.popitem(last=False)
    return list(entries)


def clear_order_cache() -> None:
    _ORDER_CACHE.clear()


def logical_page_ids(definition: FormDefinition) -> List[str]:
    return [entry.page_id for entry in logical_order_of(definition)]


def get_logical_page_index(definition: FormDefinition, page_id: Optional[str]) -> int:
    """Logical index of a page, or -1 when the id is unknown."""
    for entry in logical_order_of(definition):
        if entry.page_id == page_id:
            return entry.logical_index
    return -1


def get_logical_page_count(definition: FormDefinition) -> int:
    return len(logical_order_of(definition))


def is_first_logical_page(definition: FormDefinition, page_id: Optional[str]) -> bool:
    return get_logical_page_index(definition, page_id) == 0


def is_last_logical_page(definition: FormDefinition, page_id: Optional[str]) -> bool:
    index = get_logical_page_index(definition, page_id)
    return index >= 0 and index == get_logical_page_count(definition) - 1


def diagnose_page_graph(definition: FormDefinition) -> PageGraphDiagnostics:
    """Report graph defects: dangling targets, fallback-placed pages, duplicate ids.

    None of these stop navigation; they are logged at WARNING for authors.
    """
    known = set()
    duplicates: List[str] = []
    for page in definition.pages:
        if page.id in known and page.id not in duplicates:
            duplicates.append(page.id)
        known.add(page.id)

    dangling = []
    for page in definition.pages:
        for target in declared_targets(page):
            if target not in known:
                dangling.append({"pageId": page.id, "target": target})

    _, fallback = _compute_order(definition)
    diagnostics = PageGraphDiagnostics(
        dangling_targets=dangling,
        fallback_pages=fallback,
        duplicate_page_ids=duplicates,
    )
    if not diagnostics.ok:
        logger.warning(
            "page_graph_diagnostics title=%s dangling=%s fallback=%s duplicates=%s",
            definition.app.title,
            dangling,
            fallback,
            duplicates,
        )
    return diagnostics


__all__ = [
    "declared_targets",
    "logical_order_of",
    "clear_order_cache",
    "logical_page_ids",
    "get_logical_page_index",
    "get_logical_page_count",
    "is_first_logical_page",
    "is_last_logical_page",
    "diagnose_page_graph",
]
