"""
Meez - Pipeline Orchestrator.

Runs one ingestion request through the stages:

    Received → Fetch → Extract → Structuring → CacheWrite → SimilarityCheck → Done
                (url only)

with Failed(stage, message) reachable from any stage. Non-URL inputs go
straight from Received to Structuring.

- The fingerprint cache is read before anything expensive happens; a hit
  returns the cached recipe with zero token usage.
- Fetch and structuring errors end the run. There is no cross-stage
  recovery (an image that fails is not retried as text); the caller may
  re-run with a different input.
- Cache and similarity problems never fail a run. A missing cache means
  recompute; a missing index means "no match".
- Cancellation propagates. A cache write that already committed stays.
"""

import logging
import time
import uuid

from meez.errors import CacheUnavailable, EmbeddingUnavailable, SimilarityUnavailable
from meez.extract import extract
from meez.fetch import Fetcher
from meez.llm.embeddings import EmbeddingService, build_embedding_input
from meez.llm.prompts import format_extracted_content
from meez.models import CanonicalRecipe, ExtractedContent, InputKind, RawInput
from meez.observability import CostTracker, get_session_tracker
from meez.pipeline.result import PipelineResult, PipelineStatus, Stage, StageFailure
from meez.store.cache import FingerprintCache
from meez.store.similarity import SimilarityIndex
from meez.structuring.engine import StructuringEngine, StructuringOutcome
from meez.text import fingerprint, normalize_url

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.55


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class IngestionPipeline:
    """Sequences fetch, extraction, structuring, caching and similarity for one input."""

    def __init__(
        self,
        *,
        fetcher: Fetcher,
        engine: StructuringEngine,
        cache: FingerprintCache,
        index: SimilarityIndex,
        embedder: EmbeddingService,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        self.fetcher = fetcher
        self.engine = engine
        self.cache = cache
        self.index = index
        self.embedder = embedder
        self.similarity_threshold = similarity_threshold

    async def run(self, raw_input: RawInput, *, force_new: bool = False) -> PipelineResult:
        """
        Ingest one input.

        Args:
            raw_input: What to ingest
            force_new: Skip the "did you mean this recipe?" suggestion

        Returns:
            PipelineResult with status DONE and a recipe, or FAILED and the
            stage that failed
        """
        result = PipelineResult(request_id=uuid.uuid4().hex[:12], input_kind=raw_input.kind)
        rid = result.request_id
        result.stages.append(Stage.RECEIVED)

        try:
            result.fingerprint = fingerprint(raw_input)
        except ValueError as e:
            logger.info(f"[{rid}] No fingerprint: {e}")

        logger.info(f"[{rid}] Ingesting {raw_input.kind.value} input (fingerprint {_short(result.fingerprint)})")

        cached = await self._read_cache(result)
        if cached is not None:
            logger.info(f"[{rid}] Cache hit, skipping structuring")
            result.recipe = cached
            result.from_cache = True
            return self._finish(result, CostTracker())

        if raw_input.kind is InputKind.URL:
            source_text, extracted = await self._fetch_and_extract(raw_input.payload, result)
            if result.failure is not None:
                return result
        else:
            source_text, extracted = None, None

        result.stages.append(Stage.STRUCTURING)
        start = time.perf_counter()
        outcome = await self._structure(raw_input, source_text)
        result.timings[Stage.STRUCTURING.value] = _elapsed_ms(start)
        result.usage = result.usage + outcome.usage
        result.issues.extend(outcome.issues)

        tracker = CostTracker()
        if outcome.usage.total_tokens:
            tracker.add(self.engine.model, outcome.usage.prompt_tokens, outcome.usage.output_tokens, task="structure")

        if outcome.error is not None:
            logger.warning(
                f"[{rid}] Structuring failed: {outcome.error.kind.value} ({outcome.error.detail})"
            )
            self._fail(result, Stage.STRUCTURING, outcome.error.message)
            result.cost = tracker.summary()
            get_session_tracker().merge(tracker)
            return result

        recipe = outcome.recipe
        self._attach_source(recipe, raw_input, result, extracted)
        result.recipe = recipe

        await self._write_cache(result, raw_input.kind)
        await self._check_similarity(result, force_new=force_new)

        return self._finish(result, tracker)

    # =========================================================================
    # Stages
    # =========================================================================

    async def _read_cache(self, result: PipelineResult) -> CanonicalRecipe | None:
        if result.fingerprint is None:
            return None
        start = time.perf_counter()
        try:
            entry = await self.cache.get(result.fingerprint)
        except CacheUnavailable as e:
            logger.warning(f"[{result.request_id}] Cache read unavailable, recomputing: {e}")
            return None
        finally:
            result.timings["cache_read"] = _elapsed_ms(start)
        return entry.recipe if entry else None

    async def _fetch_and_extract(
        self,
        url: str,
        result: PipelineResult,
    ) -> tuple[str | None, ExtractedContent | None]:
        rid = result.request_id

        result.stages.append(Stage.FETCH)
        start = time.perf_counter()
        fetched = await self.fetcher.fetch(url)
        result.timings[Stage.FETCH.value] = _elapsed_ms(start)
        result.fetch_method_used = fetched.method_used

        if fetched.error is not None:
            logger.warning(
                f"[{rid}] Fetch failed ({fetched.error.kind.value}): {fetched.error.message} "
                f"[{fetched.error.detail}]"
            )
            self._fail(result, Stage.FETCH, fetched.error.message)
            return None, None

        logger.info(
            f"[{rid}] Fetched {len(fetched.html_content)} chars via {fetched.method_used.value}"
        )

        result.stages.append(Stage.EXTRACT)
        start = time.perf_counter()
        extracted = extract(fetched.html_content, fetched.final_url or url)
        result.timings[Stage.EXTRACT.value] = _elapsed_ms(start)

        if not extracted.ingredients_text:
            result.issues.append("ingredients region not found")
        if not extracted.instructions_text:
            result.issues.append("instructions region not found")
        logger.info(
            f"[{rid}] Extracted {len(extracted.ingredients_text)} ingredient chars, "
            f"{len(extracted.instructions_text)} instruction chars"
            + (", using page text" if not extracted.has_regions and extracted.fallback_text else "")
        )

        return format_extracted_content(extracted), extracted

    async def _structure(self, raw_input: RawInput, source_text: str | None) -> StructuringOutcome:
        kind = raw_input.kind
        if kind is InputKind.URL:
            return await self.engine.structure(source_text or "", InputKind.URL)
        if kind is InputKind.RAW_TEXT:
            return await self.engine.structure(raw_input.payload, InputKind.RAW_TEXT)
        if kind is InputKind.VIDEO:
            video = raw_input.payload
            return await self.engine.structure(video.transcript, InputKind.VIDEO, platform=video.platform)
        return await self.engine.structure_images(raw_input.image_payloads)

    async def _write_cache(self, result: PipelineResult, kind: InputKind) -> None:
        if result.fingerprint is None:
            logger.info(f"[{result.request_id}] No stable fingerprint, cache write skipped")
            return

        result.stages.append(Stage.CACHE_WRITE)
        start = time.perf_counter()
        try:
            await self.cache.put(result.fingerprint, result.recipe, source_kind=kind)
        except CacheUnavailable as e:
            logger.warning(f"[{result.request_id}] Cache write unavailable: {e}")
        finally:
            result.timings[Stage.CACHE_WRITE.value] = _elapsed_ms(start)

    async def _check_similarity(self, result: PipelineResult, *, force_new: bool) -> None:
        rid = result.request_id
        recipe = result.recipe

        result.stages.append(Stage.SIMILARITY_CHECK)
        start = time.perf_counter()
        try:
            recipe.embedding = await self.embedder.embed(build_embedding_input(recipe))

            if not force_new:
                result.similar_match = await self.index.find_similar(
                    recipe.embedding,
                    self.similarity_threshold,
                    exclude_key=result.fingerprint,
                )
                if result.similar_match is not None:
                    logger.info(
                        f"[{rid}] Similar to '{result.similar_match.recipe.title}' "
                        f"({result.similar_match.similarity:.2f})"
                    )

            await self.index.add(result.fingerprint or f"upload:{rid}", recipe)
        except EmbeddingUnavailable as e:
            logger.warning(f"[{rid}] Embedding unavailable, no similarity check: {e}")
        except SimilarityUnavailable as e:
            logger.warning(f"[{rid}] Similarity index unavailable: {e}")
        finally:
            result.timings[Stage.SIMILARITY_CHECK.value] = _elapsed_ms(start)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _attach_source(
        recipe: CanonicalRecipe,
        raw_input: RawInput,
        result: PipelineResult,
        extracted: ExtractedContent | None,
    ) -> None:
        if raw_input.kind is InputKind.URL:
            recipe.source_url = normalize_url(raw_input.payload)
        elif raw_input.kind is InputKind.VIDEO and raw_input.payload.source_url:
            recipe.source_url = raw_input.payload.source_url

        # Page metadata fills what the model left out
        if extracted is not None:
            recipe.image = recipe.image or extracted.image
            recipe.recipe_yield = recipe.recipe_yield or extracted.recipe_yield
            recipe.prep_time = recipe.prep_time or extracted.prep_time
            recipe.cook_time = recipe.cook_time or extracted.cook_time
            recipe.total_time = recipe.total_time or extracted.total_time

    @staticmethod
    def _fail(result: PipelineResult, stage: Stage, message: str) -> None:
        result.status = PipelineStatus.FAILED
        result.failure = StageFailure(stage, message)
        logger.info(f"[{result.request_id}] Failed at {stage.value}: {message}")

    @staticmethod
    def _finish(result: PipelineResult, tracker: CostTracker) -> PipelineResult:
        result.stages.append(Stage.DONE)
        result.cost = tracker.summary()
        get_session_tracker().merge(tracker)
        logger.info(
            f"[{result.request_id}] Done in {result.total_ms:.0f}ms "
            f"({result.usage.total_tokens} tokens, cache={'hit' if result.from_cache else 'miss'})"
        )
        return result


def _short(value: str | None) -> str:
    return value[:12] if value else "none"
