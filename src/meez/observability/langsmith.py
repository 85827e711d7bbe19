"""
Meez - LangSmith Integration.

Provides tracing and cost accounting for model calls:
- Optional LangSmith run tracing around each generation
- Cost estimation per call
- CostTracker for per-request and per-process totals

To enable tracing:
1. Set LANGCHAIN_TRACING_V2=true
2. Set LANGCHAIN_API_KEY=<your-key>
3. Set LANGCHAIN_PROJECT=meez-ingest (optional)
"""

import logging
import os
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from langsmith import Client as LangSmithClient
from langsmith.run_trees import RunTree

logger = logging.getLogger(__name__)

_langsmith_client: Any = None
_tracing_enabled: bool = False


def init_langsmith() -> bool:
    """
    Initialize LangSmith tracing if configured.

    Returns True if tracing is enabled. Call once at startup.
    """
    global _langsmith_client, _tracing_enabled

    if os.environ.get("LANGCHAIN_TRACING_V2", "").lower() != "true":
        logger.info("LangSmith tracing disabled (set LANGCHAIN_TRACING_V2=true to enable)")
        return False

    if not os.environ.get("LANGCHAIN_API_KEY"):
        logger.warning("LangSmith API key not set (LANGCHAIN_API_KEY)")
        return False

    project = os.environ.get("LANGCHAIN_PROJECT", "meez-ingest")
    try:
        _langsmith_client = LangSmithClient()
    except Exception as e:
        logger.warning(f"Failed to initialize LangSmith: {e}")
        return False

    _tracing_enabled = True
    logger.info(f"LangSmith tracing enabled for project: {project}")
    return True


def is_tracing_enabled() -> bool:
    """Check if LangSmith tracing is enabled."""
    return _tracing_enabled


class _NoopRun:
    def end(self, **kwargs) -> None:
        pass


@asynccontextmanager
async def trace_llm_call(
    name: str,
    run_type: str = "llm",
    inputs: dict | None = None,
    metadata: dict | None = None,
):
    """
    Context manager for tracing a model call.

    Usage:
        async with trace_llm_call("structure", inputs={"chars": n}) as run:
            response = await client.chat.completions.create(...)
            run.end(outputs={"text": text})
    """
    if not _tracing_enabled:
        yield _NoopRun()
        return

    run = RunTree(
        name=name,
        run_type=run_type,
        inputs=inputs or {},
        extra={"metadata": metadata or {}},
        project_name=os.environ.get("LANGCHAIN_PROJECT", "meez-ingest"),
        id=str(uuid4()),
    )

    run.post()
    try:
        yield run
    except BaseException as e:
        run.end(error=repr(e))
        run.patch()
        raise
    else:
        run.patch()


# Per 1M tokens, USD
MODEL_COSTS = {
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4.1-nano": {"input": 0.10, "output": 0.40},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "text-embedding-3-small": {"input": 0.02, "output": 0.00},
    "text-embedding-3-large": {"input": 0.13, "output": 0.00},
}

DEFAULT_PRICED_MODEL = "gpt-4.1-mini"


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate the cost of a model call in USD.

    Unknown models are priced as gpt-4.1-mini.
    """
    price = MODEL_COSTS.get(model) or MODEL_COSTS[DEFAULT_PRICED_MODEL]
    return (input_tokens * price["input"] + output_tokens * price["output"]) / 1_000_000


@dataclass(frozen=True)
class CallCost:
    """One priced model call."""

    model: str
    task: str
    input_tokens: int
    output_tokens: int
    cost: float
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CostTracker:
    """
    Accumulates priced model calls for one request, or for the whole process.

    Usage:
        tracker = CostTracker()
        tracker.add("gpt-4.1-mini", 500, 100, task="structure")
        tracker.summary()["total_cost_usd"]
    """

    def __init__(self):
        self.calls: list[CallCost] = []

    @property
    def total_input_tokens(self) -> int:
        return sum(c.input_tokens for c in self.calls)

    @property
    def total_output_tokens(self) -> int:
        return sum(c.output_tokens for c in self.calls)

    @property
    def total_cost(self) -> float:
        return sum(c.cost for c in self.calls)

    def add(self, model: str, input_tokens: int, output_tokens: int, task: str = "unknown") -> float:
        """Record a call; returns its estimated cost."""
        call = CallCost(model, task, input_tokens, output_tokens, estimate_cost(model, input_tokens, output_tokens))
        self.calls.append(call)
        return call.cost

    def merge(self, other: "CostTracker") -> None:
        """Fold another tracker's calls into this one."""
        self.calls.extend(other.calls)

    def summary(self) -> dict:
        by_model: dict[str, float] = defaultdict(float)
        by_task: dict[str, float] = defaultdict(float)
        for call in self.calls:
            by_model[call.model] += call.cost
            by_task[call.task] += call.cost
        return {
            "total_calls": len(self.calls),
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cost_usd": round(self.total_cost, 6),
            "by_model": {k: round(v, 6) for k, v in by_model.items()},
            "by_task": {k: round(v, 6) for k, v in by_task.items()},
        }


_session_tracker: CostTracker | None = None


def get_session_tracker() -> CostTracker:
    """Get or create the process-wide cost tracker."""
    global _session_tracker
    if _session_tracker is None:
        _session_tracker = CostTracker()
    return _session_tracker


def reset_session_tracker() -> None:
    """Reset the process-wide cost tracker."""
    global _session_tracker
    _session_tracker = CostTracker()
