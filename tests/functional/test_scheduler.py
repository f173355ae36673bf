"""Cooperative scheduler: keyed restart, cancellation, due runs and flush."""

from __future__ import annotations

import logging

from form_runtime.logic.scheduler import CooperativeScheduler


def test_keyed_call_restarts_the_timer(clock):
    scheduler = CooperativeScheduler(clock=clock)
    calls = []
    first = scheduler.call_later("total", 100, lambda: calls.append("first"))
    clock.advance(60)
    scheduler.call_later("total", 100, lambda: calls.append("second"))
    assert first.cancelled
    clock.advance(60)
    assert scheduler.run_due() == 0
    clock.advance(40)
    assert scheduler.run_due() == 1
    assert calls == ["second"]
    assert scheduler.pending_keys() == []


def test_due_tasks_run_in_due_order(clock):
    scheduler = CooperativeScheduler(clock=clock)
    calls = []
    scheduler.call_later("late", 50, lambda: calls.append("late"))
    scheduler.call_later("early", 10, lambda: calls.append("early"))
    assert scheduler.next_due_at() == 10
    clock.advance(100)
    scheduler.run_due()
    assert calls == ["early", "late"]


def test_cancel_and_cancel_all(clock):
    scheduler = CooperativeScheduler(clock=clock)
    calls = []
    scheduler.call_later("a", 0, lambda: calls.append("a"))
    scheduler.call_later("b", 0, lambda: calls.append("b"))
    scheduler.call_later("c", 0, lambda: calls.append("c"))
    assert scheduler.cancel("a") is True
    assert scheduler.cancel("a") is False
    assert scheduler.cancel_all() == 2
    assert scheduler.run_due() == 0
    assert calls == []
    assert scheduler.next_due_at() is None


def test_flush_runs_tasks_scheduled_while_flushing(clock):
    scheduler = CooperativeScheduler(clock=clock)
    calls = []

    def chain():
        calls.append("first")
        scheduler.call_later("second", 1000, lambda: calls.append("second"))

    scheduler.call_later("first", 1000, chain)
    assert scheduler.flush() == 2
    assert calls == ["first", "second"]


def test_flush_stops_after_round_limit(clock, caplog):
    scheduler = CooperativeScheduler(clock=clock)

    def again():
        scheduler.call_later("loop", 10, again)

    scheduler.call_later("loop", 10, again)
    with caplog.at_level(logging.WARNING, logger="form_runtime.logic.scheduler"):
        assert scheduler.flush(max_rounds=3) == 3
    assert scheduler.pending_keys() == ["loop"]
    assert "scheduler_flush_limit" in caplog.text
