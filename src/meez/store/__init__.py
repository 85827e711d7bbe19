"""Shared stores: fingerprint cache and similarity index."""

from .cache import FingerprintCache, InMemoryFingerprintCache, SupabaseFingerprintCache
from .client import build_client
from .similarity import (
    InMemorySimilarityIndex,
    SimilarityIndex,
    SupabaseSimilarityIndex,
    cosine_similarity,
)

__all__ = [
    "FingerprintCache",
    "InMemoryFingerprintCache",
    "InMemorySimilarityIndex",
    "SimilarityIndex",
    "SupabaseFingerprintCache",
    "SupabaseSimilarityIndex",
    "build_client",
    "cosine_similarity",
]
