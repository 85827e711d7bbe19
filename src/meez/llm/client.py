"""
Meez - Generative Text Service.

A small interface over the model provider:
    generate({system_prompt, user_prompt, response_must_be_json, images})
        -> {text, usage_metadata: {prompt_token_count, candidates_token_count}}

OpenAIGenerativeService implements it with AsyncOpenAI. Provider
failures are raised as GenerationError; refusals and content-filter
stops as GenerationBlocked. Callers convert both to typed errors.
Every call goes through the prompt logger and LangSmith tracing.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Protocol

import openai
from openai import AsyncOpenAI

from meez.errors import GenerationBlocked, GenerationError
from meez.llm.model_router import get_task_config
from meez.llm.prompt_logger import log_prompt
from meez.models import ImagePayload
from meez.observability.langsmith import trace_llm_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """One model call."""

    system_prompt: str
    user_prompt: str
    response_must_be_json: bool = True
    images: tuple[ImagePayload, ...] = field(default_factory=tuple)
    task: str = "structure"


@dataclass(frozen=True)
class UsageMetadata:
    prompt_token_count: int = 0
    candidates_token_count: int = 0


@dataclass(frozen=True)
class GenerationResponse:
    text: str
    usage_metadata: UsageMetadata = field(default_factory=UsageMetadata)


class GenerativeTextService(Protocol):
    """Black-box text generation. ``model`` names the model for cost accounting."""

    model: str

    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...


def _image_part(image: ImagePayload) -> dict:
    encoded = base64.b64encode(image.data).decode("ascii")
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"},
    }


class OpenAIGenerativeService:
    """Generative text service backed by OpenAI chat completions."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4.1-mini", timeout: float = 60.0):
        self._client = client
        self.model = model
        self._timeout = timeout

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        config = get_task_config(request.task, self.model)

        if request.images:
            user_content = [{"type": "text", "text": request.user_prompt}]
            user_content.extend(_image_part(image) for image in request.images)
        else:
            user_content = request.user_prompt

        api_kwargs = {
            "model": config["model"],
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": user_content},
            ],
            "temperature": config.get("temperature", 0.2),
            "max_tokens": config.get("max_tokens", 4000),
            "timeout": self._timeout,
        }
        if request.response_must_be_json:
            api_kwargs["response_format"] = {"type": "json_object"}

        async with trace_llm_call(
            request.task,
            inputs={"prompt_chars": len(request.system_prompt) + len(request.user_prompt)},
            metadata={"model": config["model"], "images": len(request.images)},
        ) as run:
            try:
                completion = await self._client.chat.completions.create(**api_kwargs)
            except openai.APITimeoutError as e:
                self._log(request, config, error=f"timeout: {e}")
                raise GenerationError(f"{self.model} timed out after {self._timeout}s") from e
            except openai.BadRequestError as e:
                self._log(request, config, error=str(e))
                if e.code == "content_policy_violation" or "content_filter" in str(e):
                    raise GenerationBlocked(f"{self.model} rejected the request: {e}") from e
                raise GenerationError(f"{self.model} rejected the request: {e}") from e
            except openai.OpenAIError as e:
                self._log(request, config, error=str(e))
                raise GenerationError(f"{self.model} call failed: {e}") from e

            choice = completion.choices[0] if completion.choices else None
            if choice is None:
                self._log(request, config, error="no choices returned")
                raise GenerationError(f"{self.model} returned no choices")

            refusal = getattr(choice.message, "refusal", None)
            if choice.finish_reason == "content_filter" or refusal:
                self._log(request, config, error=f"blocked: {refusal or choice.finish_reason}")
                raise GenerationBlocked(f"{self.model} blocked the response: {refusal or 'content_filter'}")

            text = choice.message.content or ""
            usage = UsageMetadata(
                prompt_token_count=completion.usage.prompt_tokens if completion.usage else 0,
                candidates_token_count=completion.usage.completion_tokens if completion.usage else 0,
            )
            self._log(request, config, response=text)
            run.end(outputs={
                "chars": len(text),
                "prompt_tokens": usage.prompt_token_count,
                "output_tokens": usage.candidates_token_count,
            })

        if choice.finish_reason == "length":
            logger.warning(f"{request.task}: response truncated at max_tokens={api_kwargs['max_tokens']}")

        return GenerationResponse(text=text, usage_metadata=usage)

    def _log(self, request: GenerationRequest, config: dict, *, response=None, error=None) -> None:
        log_prompt(
            task=request.task,
            model=config["model"],
            system_prompt=request.system_prompt,
            user_prompt=request.user_prompt,
            response=response,
            error=error,
            config=config,
            image_count=len(request.images),
        )
