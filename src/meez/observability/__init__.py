"""Logging, tracing and cost accounting."""

from .langsmith import (
    CostTracker,
    estimate_cost,
    get_session_tracker,
    init_langsmith,
    is_tracing_enabled,
    reset_session_tracker,
    trace_llm_call,
)
from .logging_setup import setup_logging

__all__ = [
    "CostTracker",
    "estimate_cost",
    "get_session_tracker",
    "init_langsmith",
    "is_tracing_enabled",
    "reset_session_tracker",
    "setup_logging",
    "trace_llm_call",
]
