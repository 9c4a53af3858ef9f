# tests/unit/logging/test_unit_context.py — v2
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

from peoplegraph.logging.context import (
    clear_context,
    get_context,
    set_item_context,
    set_job_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.job is None
        assert ctx.run_id is None
        assert ctx.item is None
        assert ctx.as_dict() == {}

    def test_set_job_context_resets_item(self):
        set_item_context("stale")
        set_job_context("repair-relations", "abc")
        ctx = get_context()
        assert ctx.job == "repair-relations"
        assert ctx.run_id == "abc"
        assert ctx.item is None

    def test_item_context(self):
        set_job_context("enroll", "r")
        set_item_context("Demis Hassabis")
        assert get_context().as_dict() == {
            "job": "enroll", "run_id": "r", "item": "Demis Hassabis",
        }
        set_item_context(None)
        assert "item" not in get_context().as_dict()

    def test_clear(self):
        set_job_context("x", "y")
        clear_context()
        assert get_context().as_dict() == {}
