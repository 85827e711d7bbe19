"""Recipe embeddings for near-duplicate detection."""

import logging
from typing import Protocol

import openai
from openai import AsyncOpenAI

from meez.errors import EmbeddingUnavailable
from meez.models import CanonicalRecipe

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536


class EmbeddingService(Protocol):
    """Text in, fixed-dimension float vector out."""

    model: str

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingService:
    """Embedding service backed by the OpenAI embeddings endpoint."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        timeout: float = 20.0,
    ):
        self._client = client
        self.model = model
        self.dimensions = dimensions
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        """Embed text. Raises EmbeddingUnavailable on any provider failure."""
        try:
            response = await self._client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
                timeout=self._timeout,
            )
        except openai.OpenAIError as e:
            raise EmbeddingUnavailable(f"Embedding call failed: {e}") from e

        if not response.data:
            raise EmbeddingUnavailable("Embedding call returned no data")
        return list(response.data[0].embedding)


def build_embedding_input(recipe: CanonicalRecipe) -> str:
    """Flatten the parts of a recipe that identify the dish."""
    parts = []
    if recipe.title:
        parts.append(f"Title: {recipe.title}")
    description = recipe.description or recipe.short_description
    if description:
        parts.append(f"Description: {description}")
    if recipe.ingredients:
        parts.append("Ingredients: " + ", ".join(ing.name for ing in recipe.ingredients))
    if recipe.instructions:
        parts.append("Instructions: " + " ".join(recipe.instructions))
    return "\n".join(parts)
