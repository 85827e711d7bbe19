"""Tests for the OpenAI-backed services, task routing and prompt logging."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from meez.errors import EmbeddingUnavailable, GenerationBlocked, GenerationError
from meez.llm import GenerationRequest, OpenAIEmbeddingService, OpenAIGenerativeService
from meez.llm import prompt_logger
from meez.llm.model_router import DEFAULT_MODEL, get_task_config
from meez.models import ImagePayload

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def completion(content='{"title": "Soup"}', finish_reason="stop", refusal=None):
    return SimpleNamespace(
        choices=[SimpleNamespace(
            finish_reason=finish_reason,
            message=SimpleNamespace(content=content, refusal=refusal),
        )],
        usage=SimpleNamespace(prompt_tokens=42, completion_tokens=7),
    )


def openai_client(result=None, error=None) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=result, side_effect=error)
    client.embeddings.create = AsyncMock(return_value=result, side_effect=error)
    return client


def request(**overrides) -> GenerationRequest:
    values = {"system_prompt": "You are a recipe parser.", "user_prompt": "2 eggs, whisk."}
    values.update(overrides)
    return GenerationRequest(**values)


class TestTaskConfig:
    def test_structure_is_near_greedy(self):
        config = get_task_config("structure", "gpt-4.1-mini")
        assert config["temperature"] <= 0.1
        assert config["model"] == "gpt-4.1-mini"

    def test_substitution_warmer_than_scaling(self):
        assert get_task_config("substitution")["temperature"] > get_task_config("scaling")["temperature"]

    def test_unknown_task_uses_defaults(self):
        config = get_task_config("something-else")
        assert config["model"] == DEFAULT_MODEL
        assert "max_tokens" in config

    def test_returns_fresh_dict(self):
        get_task_config("structure")["temperature"] = 9
        assert get_task_config("structure")["temperature"] != 9


class TestOpenAIGenerativeService:
    def test_json_mode_and_usage(self):
        client = openai_client(completion())
        service = OpenAIGenerativeService(client, model="gpt-4.1-mini", timeout=30)

        response = asyncio.run(service.generate(request()))

        assert response.text == '{"title": "Soup"}'
        assert response.usage_metadata.prompt_token_count == 42
        assert response.usage_metadata.candidates_token_count == 7
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["timeout"] == 30
        assert kwargs["messages"][0] == {"role": "system", "content": "You are a recipe parser."}

    def test_images_attached_as_data_urls(self):
        client = openai_client(completion())
        service = OpenAIGenerativeService(client)

        asyncio.run(service.generate(request(images=(ImagePayload(b"abc", "image/png"),), task="structure_images")))

        content = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert content[0] == {"type": "text", "text": "2 eggs, whisk."}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,YWJj"

    def test_connection_error(self):
        service = OpenAIGenerativeService(openai_client(error=openai.APIConnectionError(request=OPENAI_REQUEST)))
        with pytest.raises(GenerationError):
            asyncio.run(service.generate(request()))

    def test_timeout(self):
        service = OpenAIGenerativeService(openai_client(error=openai.APITimeoutError(request=OPENAI_REQUEST)))
        with pytest.raises(GenerationError, match="timed out"):
            asyncio.run(service.generate(request()))

    def test_content_policy_is_blocked(self):
        error = openai.BadRequestError(
            "blocked",
            response=httpx.Response(400, request=OPENAI_REQUEST),
            body={"code": "content_policy_violation"},
        )
        service = OpenAIGenerativeService(openai_client(error=error))
        with pytest.raises(GenerationBlocked):
            asyncio.run(service.generate(request()))

    def test_refusal_is_blocked(self):
        service = OpenAIGenerativeService(openai_client(completion(content=None, refusal="I can't help")))
        with pytest.raises(GenerationBlocked):
            asyncio.run(service.generate(request()))

    def test_content_filter_is_blocked(self):
        service = OpenAIGenerativeService(openai_client(completion(content="", finish_reason="content_filter")))
        with pytest.raises(GenerationBlocked):
            asyncio.run(service.generate(request()))

    def test_no_choices(self):
        empty = SimpleNamespace(choices=[], usage=None)
        service = OpenAIGenerativeService(openai_client(empty))
        with pytest.raises(GenerationError):
            asyncio.run(service.generate(request()))


class TestOpenAIEmbeddingService:
    def test_embed(self):
        result = SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])
        client = openai_client(result)
        embedder = OpenAIEmbeddingService(client, dimensions=3)

        assert asyncio.run(embedder.embed("Title: Soup")) == [0.1, 0.2, 0.3]
        assert client.embeddings.create.call_args.kwargs["dimensions"] == 3

    def test_provider_error_is_unavailable(self):
        embedder = OpenAIEmbeddingService(openai_client(error=openai.APIConnectionError(request=OPENAI_REQUEST)))
        with pytest.raises(EmbeddingUnavailable):
            asyncio.run(embedder.embed("Title: Soup"))

    def test_empty_data_is_unavailable(self):
        embedder = OpenAIEmbeddingService(openai_client(SimpleNamespace(data=[])))
        with pytest.raises(EmbeddingUnavailable):
            asyncio.run(embedder.embed("Title: Soup"))


class TestPromptLogger:
    def test_disabled_writes_nothing(self, monkeypatch):
        monkeypatch.setattr(prompt_logger, "LOG_PROMPTS", False)
        assert prompt_logger.log_prompt(task="structure", model="m", system_prompt="s", user_prompt="u") is None

    def test_writes_markdown(self, monkeypatch, tmp_path):
        monkeypatch.setattr(prompt_logger, "LOG_PROMPTS", True)
        monkeypatch.setattr(prompt_logger, "LOG_DIR", tmp_path)
        prompt_logger.reset_session()

        path = prompt_logger.log_prompt(
            task="scaling",
            model="gpt-4.1-mini",
            system_prompt="Scale it",
            user_prompt="Add 2 cups flour",
            response='{"scaledInstructions": []}',
            config={"temperature": 0.0},
        )

        assert path.name == "01_scaling.md"
        assert path.parent == prompt_logger.get_session_log_dir()
        text = path.read_text(encoding="utf-8")
        assert "Add 2 cups flour" in text
        assert "temperature=0.0" in text
        prompt_logger.reset_session()
