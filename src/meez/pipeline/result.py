"""
Meez - Pipeline result envelope.

One PipelineResult per ingestion request: the recipe (or the stage that
failed and a short reason), how the HTML was obtained, whether the cache
answered, the advisory similarity match, and per-stage timings and usage.
"""

from dataclasses import dataclass, field
from enum import Enum

from meez.models import CanonicalRecipe, FetchMethod, InputKind, SimilarityMatch, Usage


class Stage(str, Enum):
    """Pipeline states, in execution order."""

    RECEIVED = "received"
    FETCH = "fetch"
    EXTRACT = "extract"
    STRUCTURING = "structuring"
    CACHE_WRITE = "cache_write"
    SIMILARITY_CHECK = "similarity_check"
    DONE = "done"


class PipelineStatus(str, Enum):
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StageFailure:
    """Terminal failure: which stage, and a message safe to show a user."""

    stage: Stage
    message: str

    def to_json(self) -> dict:
        return {"stage": self.stage.value, "message": self.message}


@dataclass
class PipelineResult:
    request_id: str
    input_kind: InputKind
    status: PipelineStatus = PipelineStatus.DONE
    recipe: CanonicalRecipe | None = None
    failure: StageFailure | None = None
    fetch_method_used: FetchMethod | None = None
    from_cache: bool = False
    fingerprint: str | None = None
    similar_match: SimilarityMatch | None = None
    timings: dict[str, float] = field(default_factory=dict)
    usage: Usage = field(default_factory=Usage)
    cost: dict = field(default_factory=dict)
    stages: list[Stage] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is PipelineStatus.DONE

    @property
    def error(self) -> StageFailure | None:
        return self.failure

    @property
    def total_ms(self) -> float:
        return sum(self.timings.values())

    def to_json(self) -> dict:
        """Response envelope for the HTTP API and CLI."""
        match = None
        if self.similar_match is not None:
            match = {
                "similarity": round(self.similar_match.similarity, 4),
                "recipe": self.similar_match.recipe.to_json(),
            }
        return {
            "request_id": self.request_id,
            "input_kind": self.input_kind.value,
            "status": self.status.value,
            "recipe": self.recipe.to_json() if self.recipe else None,
            "error": self.failure.to_json() if self.failure else None,
            "fetch_method_used": self.fetch_method_used.value if self.fetch_method_used else None,
            "from_cache": self.from_cache,
            "similar_match": match,
            "timings_ms": {k: round(v, 1) for k, v in self.timings.items()},
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "output_tokens": self.usage.output_tokens,
            },
            "cost": self.cost,
            "stages": [s.value for s in self.stages],
        }
