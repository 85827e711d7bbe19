"""
Meez - Similarity Index.

Embedding-based near-duplicate lookup ("did you mean this recipe you
already imported?"). Advisory only: below the threshold the caller
behaves as if nothing matched, and callers may always force-create.

Similarity is cosine similarity clamped to [0, 1].
"""

import asyncio
import logging
import math
from typing import Protocol

from pydantic import ValidationError
from supabase import Client

from meez.errors import SimilarityUnavailable
from meez.models import CanonicalRecipe, SimilarityMatch
from meez.store.cache import CACHE_TABLE
from meez.store.client import STORAGE_ERRORS, run_query

logger = logging.getLogger(__name__)

MATCH_FUNCTION = "match_recipes_by_embedding"


class SimilarityIndex(Protocol):
    async def find_similar(
        self,
        embedding: list[float],
        min_similarity: float,
        *,
        exclude_key: str | None = None,
    ) -> SimilarityMatch | None: ...

    async def find_top_matches(
        self,
        embedding: list[float],
        k: int,
        *,
        exclude_key: str | None = None,
    ) -> list[SimilarityMatch]: ...

    async def add(self, key: str, recipe: CanonicalRecipe) -> None: ...


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors, clamped to [0, 1]."""
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} vs {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))


class InMemorySimilarityIndex:
    """Brute-force cosine index for development and tests."""

    def __init__(self):
        self._recipes: dict[str, CanonicalRecipe] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._recipes)

    async def find_top_matches(
        self,
        embedding: list[float],
        k: int,
        *,
        exclude_key: str | None = None,
    ) -> list[SimilarityMatch]:
        matches = []
        for key, recipe in list(self._recipes.items()):
            if key == exclude_key or not recipe.embedding:
                continue
            if len(recipe.embedding) != len(embedding):
                logger.warning(f"Skipping {key[:12]}: embedding dimension {len(recipe.embedding)}")
                continue
            matches.append(SimilarityMatch(recipe, cosine_similarity(embedding, recipe.embedding), key))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:max(k, 0)]

    async def find_similar(
        self,
        embedding: list[float],
        min_similarity: float,
        *,
        exclude_key: str | None = None,
    ) -> SimilarityMatch | None:
        top = await self.find_top_matches(embedding, 1, exclude_key=exclude_key)
        if top and top[0].similarity >= min_similarity:
            return top[0]
        return None

    async def add(self, key: str, recipe: CanonicalRecipe) -> None:
        if not recipe.embedding:
            raise ValueError("Recipe has no embedding to index")
        async with self._lock:
            self._recipes[key] = recipe.model_copy(deep=True)


class SupabaseSimilarityIndex:
    """
    pgvector-backed index.

    Embeddings live on the cache rows; queries go through the
    ``match_recipes_by_embedding(query_embedding, match_threshold,
    match_count)`` function, which returns rows ordered by similarity.

    Image uploads have no fingerprint, so they are indexed under
    ``upload:{request_id}``. Those rows exist only for the index: no cache
    lookup ever asks for an ``upload:`` key, and they carry no
    ``source_type``.
    """

    def __init__(
        self,
        client: Client,
        *,
        table: str = CACHE_TABLE,
        match_function: str = MATCH_FUNCTION,
        timeout: float = 10.0,
    ):
        self._client = client
        self._table = table
        self._match_function = match_function
        self._timeout = timeout

    async def _match(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
        exclude_key: str | None,
    ) -> list[SimilarityMatch]:
        params = {
            "query_embedding": embedding,
            "match_threshold": threshold,
            # One extra row in case the excluded recipe is among the hits
            "match_count": count + 1 if exclude_key else count,
        }
        try:
            response = await run_query(
                lambda: self._client.rpc(self._match_function, params).execute(),
                timeout=self._timeout,
            )
        except STORAGE_ERRORS as e:
            raise SimilarityUnavailable(f"Similarity query failed: {e!r}") from e

        matches = []
        for row in response.data or []:
            key = row.get("fingerprint")
            if exclude_key and key == exclude_key:
                continue
            try:
                recipe = CanonicalRecipe.model_validate(row.get("recipe_data") or {})
            except ValidationError as e:
                logger.warning(f"Ignoring unreadable match row {key}: {e}")
                continue
            similarity = max(0.0, min(1.0, float(row.get("similarity", 0.0))))
            matches.append(SimilarityMatch(recipe, similarity, key))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:count]

    async def find_top_matches(
        self,
        embedding: list[float],
        k: int,
        *,
        exclude_key: str | None = None,
    ) -> list[SimilarityMatch]:
        if k <= 0:
            return []
        return await self._match(embedding, 0.0, k, exclude_key)

    async def find_similar(
        self,
        embedding: list[float],
        min_similarity: float,
        *,
        exclude_key: str | None = None,
    ) -> SimilarityMatch | None:
        matches = await self._match(embedding, min_similarity, 1, exclude_key)
        if matches and matches[0].similarity >= min_similarity:
            return matches[0]
        return None

    async def add(self, key: str, recipe: CanonicalRecipe) -> None:
        if not recipe.embedding:
            raise ValueError("Recipe has no embedding to index")
        row = {
            "fingerprint": key,
            "recipe_data": recipe.to_json(),
            "embedding": recipe.embedding,
        }
        try:
            await run_query(
                lambda: self._client.table(self._table).upsert(row, on_conflict="fingerprint").execute(),
                timeout=self._timeout,
            )
        except STORAGE_ERRORS as e:
            raise SimilarityUnavailable(f"Similarity index write failed: {e!r}") from e
