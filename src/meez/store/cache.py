"""
Meez - Fingerprint Cache.

Maps an input fingerprint to the structured recipe computed for it, so a
repeat request never pays for structuring twice. One authoritative entry
per fingerprint; concurrent writers resolve as last write wins.

Backends raise CacheUnavailable on storage failures; the orchestrator
downgrades that to always-recompute.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError
from supabase import Client

from meez.errors import CacheUnavailable
from meez.models import CacheEntry, CanonicalRecipe, InputKind
from meez.store.client import STORAGE_ERRORS, run_query

logger = logging.getLogger(__name__)

CACHE_TABLE = "processed_recipes_cache"


class FingerprintCache(Protocol):
    async def get(self, fingerprint: str) -> CacheEntry | None: ...

    async def put(
        self,
        fingerprint: str,
        recipe: CanonicalRecipe,
        *,
        source_kind: InputKind | None = None,
    ) -> CacheEntry: ...


def _snapshot(recipe: CanonicalRecipe) -> CanonicalRecipe:
    return recipe.model_copy(deep=True, update={"embedding": None})


class InMemoryFingerprintCache:
    """Process-local cache. Reads are lock-free; writes are serialized."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, fingerprint: str) -> CacheEntry | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        return CacheEntry(entry.fingerprint, entry.recipe.model_copy(deep=True), entry.created_at, entry.source_kind)

    async def put(
        self,
        fingerprint: str,
        recipe: CanonicalRecipe,
        *,
        source_kind: InputKind | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(fingerprint, _snapshot(recipe), datetime.now(timezone.utc), source_kind)
        async with self._lock:
            self._entries[fingerprint] = entry
        return entry


class SupabaseFingerprintCache:
    """Cache rows in the ``processed_recipes_cache`` table, upserted by fingerprint."""

    def __init__(self, client: Client, *, table: str = CACHE_TABLE, timeout: float = 10.0):
        self._client = client
        self._table = table
        self._timeout = timeout

    async def get(self, fingerprint: str) -> CacheEntry | None:
        def query():
            return (
                self._client.table(self._table)
                .select("fingerprint, recipe_data, source_type, created_at")
                .eq("fingerprint", fingerprint)
                .limit(1)
                .execute()
            )

        try:
            response = await run_query(query, timeout=self._timeout)
        except STORAGE_ERRORS as e:
            raise CacheUnavailable(f"Cache read failed: {e!r}") from e

        if not response.data:
            return None

        row = response.data[0]
        try:
            recipe = CanonicalRecipe.model_validate(row["recipe_data"])
        except (ValidationError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache row for {fingerprint[:12]}: {e}")
            return None

        return CacheEntry(
            fingerprint=fingerprint,
            recipe=recipe,
            created_at=_parse_timestamp(row.get("created_at")),
            source_kind=_parse_kind(row.get("source_type")),
        )

    async def put(
        self,
        fingerprint: str,
        recipe: CanonicalRecipe,
        *,
        source_kind: InputKind | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(fingerprint, _snapshot(recipe), datetime.now(timezone.utc), source_kind)
        row = {
            "fingerprint": fingerprint,
            "recipe_data": entry.recipe.to_json(),
            "source_type": source_kind.value if source_kind else None,
            "created_at": entry.created_at.isoformat(),
        }

        def query():
            return self._client.table(self._table).upsert(row, on_conflict="fingerprint").execute()

        try:
            await run_query(query, timeout=self._timeout)
        except STORAGE_ERRORS as e:
            raise CacheUnavailable(f"Cache write failed: {e!r}") from e

        return entry


def _parse_timestamp(value) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def _parse_kind(value) -> InputKind | None:
    try:
        return InputKind(value) if value else None
    except ValueError:
        return None
