"""Logical page ordering and page graph diagnostics."""

from __future__ import annotations

import logging

from form_builders import definition, page

from form_runtime.logic.page_ordering import (
    diagnose_page_graph,
    get_logical_page_count,
    get_logical_page_index,
    is_first_logical_page,
    is_last_logical_page,
    logical_order_of,
    logical_page_ids,
)


def _ids(defn):
    return [entry.page_id for entry in logical_order_of(defn)]


def test_linear_chain_orders_by_edges_not_storage_order():
    defn = definition(
        page("c"),
        page("a", nextPage="b"),
        page("b", nextPage="c"),
    )
    assert _ids(defn) == ["a", "b", "c"]
    assert [e.logical_index for e in logical_order_of(defn)] == [0, 1, 2]


def test_every_page_appears_exactly_once_and_order_is_stable():
    defn = definition(
        page("start", branches=[{"condition": {"field": "f", "operator": "==", "value": "x"}, "nextPage": "x"}], nextPage="z"),
        page("x", nextPage="end"),
        page("z", nextPage="end"),
        page("end", isEndPage=True),
        page("orphan"),
    )
    first = _ids(defn)
    assert sorted(first) == sorted(p.id for p in defn.pages)
    assert len(set(first)) == len(first)
    assert _ids(defn) == first
    assert first[0] == "start"
    assert first.index("end") > first.index("x")
    assert first.index("end") > first.index("z")


def test_cycle_falls_back_to_array_order(caplog):
    defn = definition(
        page("intro", nextPage="loop_a"),
        page("loop_b", nextPage="loop_a"),
        page("loop_a", nextPage="loop_b"),
    )
    with caplog.at_level(logging.WARNING):
        ids = _ids(defn)
    assert ids == ["intro", "loop_b", "loop_a"]
    assert "page_order_fallback" in caplog.text


def test_dangling_targets_are_ignored_for_ordering():
    defn = definition(page("a", nextPage="missing"), page("b"))
    assert _ids(defn) == ["a", "b"]


def test_index_helpers():
    defn = definition(page("a", nextPage="b"), page("b", nextPage="c"), page("c"))
    assert logical_page_ids(defn) == ["a", "b", "c"]
    assert get_logical_page_index(defn, "b") == 1
    assert get_logical_page_index(defn, "nope") == -1
    assert get_logical_page_count(defn) == 3
    assert is_first_logical_page(defn, "a")
    assert not is_first_logical_page(defn, "b")
    assert is_last_logical_page(defn, "c")
    assert not is_last_logical_page(defn, "nope")


def test_cache_is_keyed_by_definition_identity():
    first = definition(page("a", nextPage="b"), page("b"))
    second = definition(page("b", nextPage="a"), page("a"))
    assert _ids(first) == ["a", "b"]
    assert _ids(second) == ["b", "a"]
    assert _ids(first) == ["a", "b"]


def test_diagnostics_report_dangling_fallback_and_duplicates(caplog):
    defn = definition(
        page("a", nextPage="ghost", branches=[{"condition": {"field": "f", "value": 1}, "nextPage": "phantom"}]),
        page("b", nextPage="c"),
        page("c", nextPage="b"),
        page("a"),
    )
    with caplog.at_level(logging.WARNING):
        diagnostics = diagnose_page_graph(defn)
    assert {"pageId": "a", "target": "phantom"} in diagnostics.dangling_targets
    assert {"pageId": "a", "target": "ghost"} in diagnostics.dangling_targets
    assert diagnostics.fallback_pages == ["b", "c"]
    assert diagnostics.duplicate_page_ids == ["a"]
    assert not diagnostics.ok
    assert "page_graph_diagnostics" in caplog.text


def test_clean_graph_has_no_diagnostics():
    defn = definition(page("a", nextPage="b"), page("b", isEndPage=True))
    assert diagnose_page_graph(defn).ok
