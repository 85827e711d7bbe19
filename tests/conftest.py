"""
Pytest configuration and fixtures for Meez tests.

No test reaches the network: HTTP goes through httpx.MockTransport, the
model and embedder are scripted fakes, Supabase is a MagicMock.
"""

import json
import os
from unittest.mock import MagicMock

import httpx
import pytest

# Set test environment before importing meez modules
os.environ.setdefault("OPENAI_API_KEY", "test-key-not-real")
os.environ["MEEZ_ENV"] = "development"
os.environ["MEEZ_LOG_PROMPTS"] = "0"

from meez.fetch import Fetcher
from meez.llm.client import GenerationRequest, GenerationResponse, UsageMetadata
from meez.pipeline import IngestionPipeline
from meez.store import InMemoryFingerprintCache, InMemorySimilarityIndex
from meez.structuring import StructuringEngine


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeGenerativeService:
    """
    Scripted generative text service.

    Each queued item is returned by one call: a dict (serialized to JSON),
    a str (returned as-is) or an exception (raised).
    """

    model = "gpt-4.1-mini"

    def __init__(self, *responses, prompt_tokens: int = 120, output_tokens: int = 80):
        self.responses = list(responses)
        self.requests: list[GenerationRequest] = []
        self.prompt_tokens = prompt_tokens
        self.output_tokens = output_tokens

    @property
    def calls(self) -> int:
        return len(self.requests)

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("FakeGenerativeService called with no scripted response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        text = response if isinstance(response, str) else json.dumps(response)
        return GenerationResponse(
            text=text,
            usage_metadata=UsageMetadata(self.prompt_tokens, self.output_tokens),
        )


class FakeEmbedder:
    """Returns fixed vectors per title; unknown titles get ``default``."""

    model = "text-embedding-3-small"

    def __init__(self, vectors: dict[str, list[float]] | None = None, default=None, error=None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.error = error
        self.inputs: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        for title, vector in self.vectors.items():
            if f"Title: {title}" in text:
                return vector
        return self.default


class FakeFallbackClient:
    """Fallback proxy returning a fixed payload, or raising."""

    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    async def fetch(self, url: str, *, credential: str, timeout: float):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.payload


def mock_http_client(handler) -> httpx.AsyncClient:
    """httpx client whose requests are answered by ``handler(request)``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def html_response(status: int, body: str = ""):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text=body, headers={"content-type": "text/html"})
    return handler


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


RECIPE_PAGE_HTML = """
<html>
<head><title>Lemon Garlic Pasta | Example Kitchen</title>
<meta property="og:image" content="https://example.com/pasta.jpg"></head>
<body>
<nav><ul><li>Home</li><li>Recipes</li></ul></nav>
<h1>Lemon Garlic Pasta</h1>
<h2>Ingredients</h2>
<ul>
  <li>8 oz spaghetti</li>
  <li>3 cloves garlic, minced</li>
  <li>2 tablespoons olive oil</li>
  <li>1 lemon, zested and juiced</li>
</ul>
<h2>Instructions</h2>
<ol>
  <li>Cook the spaghetti in salted boiling water until al dente, then drain.</li>
  <li>Heat the olive oil in a skillet and cook the garlic for 1 minute.</li>
  <li>Add the pasta, lemon zest and juice, toss and serve.</li>
</ol>
</body>
</html>
"""

OMELET_TEXT = """Recipe Title: Simple Omelet
Ingredients:
- 2 eggs
- 2 tablespoons milk
- Salt and pepper to taste
- 1 tablespoon butter

Instructions:
1. In a bowl, beat the eggs with the milk, salt, and pepper.
2. Melt butter in a skillet over medium heat.
3. Pour in the egg mixture and cook until nearly set."""


def recipe_json(title: str = "Lemon Garlic Pasta", **overrides) -> dict:
    data = {
        "title": title,
        "description": "A quick weeknight pasta.",
        "shortDescription": "Bright lemony pasta",
        "recipeYield": "4, 4 servings",
        "prepTime": "10 minutes",
        "cookTime": "15 minutes",
        "ingredientGroups": [
            {
                "name": "Main",
                "ingredients": [
                    {"name": "spaghetti", "amount": "8", "unit": "oz"},
                    {"name": "garlic", "amount": 3, "unit": "cloves", "preparation": "minced"},
                    {"name": "olive oil", "amount": "2", "unit": "tablespoons"},
                ],
            }
        ],
        "instructions": [
            "Cook the spaghetti until al dente.",
            "Cook the garlic in olive oil for 1 minute.",
            "Toss everything together and serve.",
        ],
        "tips": "Reserve some pasta water.",
    }
    data.update(overrides)
    return data


@pytest.fixture
def sample_recipe_json() -> dict:
    return recipe_json()


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_service() -> FakeGenerativeService:
    return FakeGenerativeService()


@pytest.fixture
def engine(fake_service) -> StructuringEngine:
    return StructuringEngine(fake_service)


@pytest.fixture
def make_pipeline():
    """Build a pipeline around fakes; override any collaborator by keyword."""

    def _make(
        *,
        service: FakeGenerativeService | None = None,
        http_handler=None,
        fallback: FakeFallbackClient | None = None,
        cache=None,
        index=None,
        embedder=None,
        threshold: float = 0.55,
    ) -> IngestionPipeline:
        http_client = mock_http_client(http_handler or html_response(200, RECIPE_PAGE_HTML))
        fetcher = Fetcher(
            http_client,
            fallback_client=fallback,
            fallback_credential="proxy-key" if fallback is not None else None,
        )
        return IngestionPipeline(
            fetcher=fetcher,
            engine=StructuringEngine(service or FakeGenerativeService()),
            cache=cache if cache is not None else InMemoryFingerprintCache(),
            index=index if index is not None else InMemorySimilarityIndex(),
            embedder=embedder or FakeEmbedder(),
            similarity_threshold=threshold,
        )

    return _make


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.upsert.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table
    mock_client.rpc.return_value = MagicMock(execute=MagicMock(return_value=MagicMock(data=[])))

    return mock_client


