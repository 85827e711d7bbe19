"""Model access: generative text, embeddings, prompts."""

from .client import (
    GenerationRequest,
    GenerationResponse,
    GenerativeTextService,
    OpenAIGenerativeService,
    UsageMetadata,
)
from .embeddings import EmbeddingService, OpenAIEmbeddingService, build_embedding_input

__all__ = [
    "EmbeddingService",
    "GenerationRequest",
    "GenerationResponse",
    "GenerativeTextService",
    "OpenAIEmbeddingService",
    "OpenAIGenerativeService",
    "UsageMetadata",
    "build_embedding_input",
]
