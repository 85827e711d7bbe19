"""
Meez - Service wiring.

Builds every collaborator explicitly from Settings. Nothing in the core
reaches for a global client; the API lifespan and the CLI each build one
IngestionServices and close it when done.
"""

import logging
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from meez.config import Settings
from meez.fetch import Fetcher, ScraperApiClient
from meez.llm import OpenAIEmbeddingService, OpenAIGenerativeService
from meez.llm.prompt_logger import enable_prompt_logging
from meez.pipeline import IngestionPipeline
from meez.rewriters import ScalingRewriter, SubstitutionRewriter
from meez.store import (
    InMemoryFingerprintCache,
    InMemorySimilarityIndex,
    SupabaseFingerprintCache,
    SupabaseSimilarityIndex,
    build_client,
)
from meez.structuring import StructuringEngine

logger = logging.getLogger(__name__)


@dataclass
class IngestionServices:
    """Everything a caller needs, with one owner for the network clients."""

    http_client: httpx.AsyncClient
    openai_client: AsyncOpenAI
    engine: StructuringEngine
    pipeline: IngestionPipeline
    substitution_rewriter: SubstitutionRewriter
    scaling_rewriter: ScalingRewriter

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.openai_client.close()


def build_services(settings: Settings) -> IngestionServices:
    """Construct the pipeline and rewriters for the given settings."""
    if settings.meez_log_prompts:
        enable_prompt_logging(True)

    http_client = httpx.AsyncClient()
    openai_client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)

    fallback_client = ScraperApiClient(http_client) if settings.fallback_enabled else None
    fetcher = Fetcher(
        http_client,
        fallback_client=fallback_client,
        fallback_credential=settings.scraperapi_key,
        timeout=settings.fetch_timeout_seconds,
        fallback_timeout=settings.fallback_timeout_seconds,
    )

    generator = OpenAIGenerativeService(
        openai_client,
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
    )
    engine = StructuringEngine(
        generator,
        max_prompt_chars=settings.max_prompt_chars,
        timeout=settings.llm_timeout_seconds,
    )
    embedder = OpenAIEmbeddingService(
        openai_client,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        timeout=settings.embedding_timeout_seconds,
    )

    if settings.storage_enabled:
        db = build_client(settings.supabase_url, settings.supabase_service_role_key)
        cache = SupabaseFingerprintCache(
            db, table=settings.cache_table, timeout=settings.storage_timeout_seconds
        )
        index = SupabaseSimilarityIndex(
            db,
            table=settings.cache_table,
            match_function=settings.match_function,
            timeout=settings.storage_timeout_seconds,
        )
        logger.info("Using Supabase cache and similarity index")
    else:
        cache = InMemoryFingerprintCache()
        index = InMemorySimilarityIndex()
        logger.info("Supabase not configured, using in-memory cache and similarity index")

    if not settings.fallback_enabled:
        logger.info("SCRAPERAPI_KEY not set, fallback proxy disabled")

    pipeline = IngestionPipeline(
        fetcher=fetcher,
        engine=engine,
        cache=cache,
        index=index,
        embedder=embedder,
        similarity_threshold=settings.similarity_threshold,
    )

    return IngestionServices(
        http_client=http_client,
        openai_client=openai_client,
        engine=engine,
        pipeline=pipeline,
        substitution_rewriter=SubstitutionRewriter(engine, max_prompt_chars=settings.max_rewrite_prompt_chars),
        scaling_rewriter=ScalingRewriter(engine, max_prompt_chars=settings.max_rewrite_prompt_chars),
    )
