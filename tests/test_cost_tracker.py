"""
Tests for cost estimation and tracking.
"""

import pytest

from meez.observability.langsmith import (
    CostTracker,
    estimate_cost,
    get_session_tracker,
    reset_session_tracker,
)


class TestEstimateCost:
    """Test cost estimation utility."""

    def test_returns_positive(self):
        assert estimate_cost("gpt-4.1-mini", 1000, 500) > 0

    def test_mini_is_cheap(self):
        assert estimate_cost("gpt-4.1-mini", 1000, 500) < 0.01

    def test_known_price(self):
        # 1M in at $0.40, 1M out at $1.60
        assert estimate_cost("gpt-4.1-mini", 1_000_000, 1_000_000) == pytest.approx(2.0)

    def test_unknown_model_priced_as_default(self):
        assert estimate_cost("unknown-model", 1000, 500) == estimate_cost("gpt-4.1-mini", 1000, 500)


class TestCostTracker:
    """Test CostTracker accumulation."""

    def test_add_and_totals(self):
        tracker = CostTracker()
        tracker.add("gpt-4.1-mini", 1000, 500, task="structure")
        tracker.add("gpt-4.1-mini", 500, 200, task="scaling")

        assert tracker.total_input_tokens == 1500
        assert tracker.total_output_tokens == 700
        assert tracker.total_cost > 0
        assert len(tracker.calls) == 2

    def test_summary_structure(self):
        tracker = CostTracker()
        tracker.add("gpt-4.1-mini", 1000, 500, task="structure")
        tracker.add("text-embedding-3-small", 500, 0, task="embed")

        summary = tracker.summary()

        assert summary["total_calls"] == 2
        assert "gpt-4.1-mini" in summary["by_model"]
        assert set(summary["by_task"]) == {"structure", "embed"}

    def test_merge(self):
        request = CostTracker()
        request.add("gpt-4.1-mini", 100, 50, task="structure")
        session = CostTracker()
        session.add("gpt-4.1-mini", 10, 5, task="substitution")

        session.merge(request)

        assert len(session.calls) == 2
        assert session.total_input_tokens == 110

    def test_empty_tracker(self):
        tracker = CostTracker()
        assert tracker.summary()["total_calls"] == 0
        assert tracker.total_cost == 0


class TestSessionTracker:
    def test_reset(self):
        get_session_tracker().add("gpt-4.1-mini", 10, 10)
        reset_session_tracker()
        assert get_session_tracker().summary()["total_calls"] == 0
