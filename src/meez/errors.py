"""
Meez - Error taxonomy.

The Fetcher and Structuring Engine return typed error values instead of
raising, so the orchestrator can attach stage context. Storage and
embedding adapters raise the *Unavailable exceptions below; the
orchestrator downgrades them (always-recompute, no match found).

Every error carries two texts:
- message: short, safe to show to an end user
- detail: full diagnostic (provider payloads, exception text), logs only
"""

from dataclasses import dataclass, field
from enum import Enum


class FetchErrorKind(str, Enum):
    """Why a document could not be retrieved."""

    INVALID_URL = "invalid_url"
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    NETWORK = "network"
    EMPTY_BODY = "empty_body"
    FALLBACK_BAD_RESPONSE = "fallback_bad_response"
    FALLBACK_FAILED = "fallback_failed"


class StructuringErrorKind(str, Enum):
    """Why a structuring (or rewrite) call produced no usable result."""

    EMPTY_INPUT = "empty_input"
    PROMPT_TOO_LARGE = "prompt_too_large"
    MODEL_ERROR = "model_error"
    SAFETY_BLOCKED = "safety_blocked"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"
    SCHEMA_INVALID = "schema_invalid"
    STEP_COUNT_MISMATCH = "step_count_mismatch"


@dataclass(frozen=True)
class FetchError:
    """Typed fetch failure.

    ``message`` is a compact reason ("403", "timeout", "network error")
    so that a combined direct/fallback message stays readable.
    """

    kind: FetchErrorKind
    message: str
    detail: str = ""
    status_code: int | None = None


# Short messages shown to users, keyed by kind. Raw model output and
# provider errors never appear here.
_STRUCTURING_MESSAGES = {
    StructuringErrorKind.EMPTY_INPUT: "The input does not look like a recipe.",
    StructuringErrorKind.PROMPT_TOO_LARGE: "The recipe content is too large to process.",
    StructuringErrorKind.MODEL_ERROR: "The recipe service is unavailable right now.",
    StructuringErrorKind.SAFETY_BLOCKED: "The recipe service declined to process this content.",
    StructuringErrorKind.EMPTY_RESPONSE: "The recipe service returned an empty response.",
    StructuringErrorKind.INVALID_JSON: "The recipe service returned an unreadable response.",
    StructuringErrorKind.SCHEMA_INVALID: "Could not find a complete recipe in this content.",
    StructuringErrorKind.STEP_COUNT_MISMATCH: "The rewritten instructions did not match the original steps.",
}


@dataclass(frozen=True)
class StructuringError:
    """Typed structuring failure. ``fields`` lists failed schema fields."""

    kind: StructuringErrorKind
    detail: str = ""
    fields: tuple[str, ...] = field(default_factory=tuple)

    @property
    def message(self) -> str:
        base = _STRUCTURING_MESSAGES[self.kind]
        if self.kind is StructuringErrorKind.SCHEMA_INVALID and self.fields:
            return f"{base} Missing: {', '.join(self.fields)}."
        return base


class MeezError(Exception):
    """Base class for pipeline exceptions."""


class CacheUnavailable(MeezError):
    """Fingerprint cache could not be read or written."""


class SimilarityUnavailable(MeezError):
    """Similarity index could not be queried or updated."""


class EmbeddingUnavailable(MeezError):
    """Embedding service call failed."""


class GenerationError(MeezError):
    """Generative text service call failed (network, 5xx, timeout)."""


class GenerationBlocked(GenerationError):
    """Generative text service refused the request for safety reasons."""
