"""
Meez - Structuring Engine.

Sends source text (or recipe images) to the generative text service with
the canonical-schema prompt and validates the JSON that comes back.

Contract:
    structure(source_text, source_kind) -> StructuringOutcome
        {recipe | None, error | None, usage, time_ms, issues}

- Prompts over the character ceiling fail fast with PROMPT_TOO_LARGE;
  nothing is truncated.
- No retries here. Failures come back as typed StructuringError values
  and the caller decides what to do.
- Every call records token usage and wall-clock latency.

generate_json() is the shared lower level the rewriters use with their
own prompts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from meez.errors import GenerationBlocked, GenerationError, StructuringError, StructuringErrorKind
from meez.extract.normalizer import normalize_servings
from meez.llm.client import GenerationRequest, GenerativeTextService
from meez.llm.prompts import (
    IMAGE_PROMPT,
    RECIPE_SYSTEM_PROMPT,
    build_text_prompt,
    build_url_prompt,
    build_video_prompt,
)
from meez.models import CanonicalRecipe, ImagePayload, InputKind, Usage
from meez.structuring.json_utils import parse_json_object
from meez.structuring.schema import validate_recipe_payload
from meez.text import preprocess_raw_text, validate_recipe_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROMPT_CHARS = 150_000


@dataclass
class JsonOutcome:
    """Parsed JSON object from one model call, or a typed error."""

    data: dict | None
    error: StructuringError | None
    usage: Usage = field(default_factory=Usage)
    time_ms: float = 0.0


@dataclass
class StructuringOutcome:
    """Result of structuring one source."""

    recipe: CanonicalRecipe | None
    error: StructuringError | None
    usage: Usage = field(default_factory=Usage)
    time_ms: float = 0.0
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.recipe is not None


class StructuringEngine:
    """Schema-constrained recipe structuring over a generative text service."""

    def __init__(
        self,
        service: GenerativeTextService,
        *,
        max_prompt_chars: int = DEFAULT_MAX_PROMPT_CHARS,
        timeout: float | None = None,
    ):
        self._service = service
        self._max_prompt_chars = max_prompt_chars
        self._timeout = timeout

    @property
    def model(self) -> str:
        return getattr(self._service, "model", "unknown")

    async def structure(
        self,
        source_text: str,
        source_kind: InputKind,
        *,
        platform: str | None = None,
    ) -> StructuringOutcome:
        """
        Structure text into a CanonicalRecipe.

        Args:
            source_text: Pasted text, formatted page extraction, or video transcript
            source_kind: InputKind.RAW_TEXT, URL or VIDEO
            platform: Video platform name, used in the video prompt
        """
        if source_kind in (InputKind.IMAGE, InputKind.IMAGES):
            raise ValueError("Image sources go through structure_images()")

        text = preprocess_raw_text(source_text)
        if not text:
            return StructuringOutcome(None, StructuringError(StructuringErrorKind.EMPTY_INPUT, "empty source text"))

        if source_kind is InputKind.RAW_TEXT:
            validation_error = validate_recipe_text(text)
            if validation_error:
                return StructuringOutcome(
                    None, StructuringError(StructuringErrorKind.EMPTY_INPUT, validation_error)
                )
            user_prompt = build_text_prompt(text)
        elif source_kind is InputKind.URL:
            user_prompt = build_url_prompt(text)
        else:
            user_prompt = build_video_prompt(text, platform)

        outcome = await self.generate_json(RECIPE_SYSTEM_PROMPT, user_prompt, task="structure")
        return self._to_recipe(outcome)

    async def structure_images(self, images: tuple[ImagePayload, ...]) -> StructuringOutcome:
        """Read recipe text from images and structure it in the same call."""
        if not images:
            return StructuringOutcome(None, StructuringError(StructuringErrorKind.EMPTY_INPUT, "no images"))

        outcome = await self.generate_json(
            RECIPE_SYSTEM_PROMPT,
            IMAGE_PROMPT,
            task="structure_images",
            images=tuple(images),
        )
        return self._to_recipe(outcome)

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        task: str,
        max_prompt_chars: int | None = None,
        images: tuple[ImagePayload, ...] = (),
    ) -> JsonOutcome:
        """One JSON-mode model call with size guard, usage and latency."""
        limit = max_prompt_chars or self._max_prompt_chars
        size = len(system_prompt) + len(user_prompt)
        if size > limit:
            logger.warning(f"{task}: prompt too large ({size} chars, limit {limit})")
            return JsonOutcome(
                None,
                StructuringError(StructuringErrorKind.PROMPT_TOO_LARGE, f"{size} chars > {limit}"),
            )

        request = GenerationRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            response_must_be_json=True,
            images=images,
            task=task,
        )

        start = time.perf_counter()
        try:
            if self._timeout:
                response = await asyncio.wait_for(self._service.generate(request), self._timeout)
            else:
                response = await self._service.generate(request)
        except GenerationBlocked as e:
            logger.warning(f"{task}: generation blocked: {e}")
            return JsonOutcome(None, StructuringError(StructuringErrorKind.SAFETY_BLOCKED, str(e)),
                               time_ms=_elapsed_ms(start))
        except GenerationError as e:
            logger.warning(f"{task}: generation failed: {e}")
            return JsonOutcome(None, StructuringError(StructuringErrorKind.MODEL_ERROR, str(e)),
                               time_ms=_elapsed_ms(start))
        except TimeoutError:
            logger.warning(f"{task}: generation timed out after {self._timeout}s")
            return JsonOutcome(None, StructuringError(StructuringErrorKind.MODEL_ERROR, "timeout"),
                               time_ms=_elapsed_ms(start))

        time_ms = _elapsed_ms(start)
        usage = Usage(
            prompt_tokens=response.usage_metadata.prompt_token_count,
            output_tokens=response.usage_metadata.candidates_token_count,
        )
        logger.info(
            f"{task}: {usage.prompt_tokens} prompt + {usage.output_tokens} output tokens "
            f"in {time_ms:.0f}ms ({size} prompt chars)"
        )

        if not response.text or not response.text.strip():
            return JsonOutcome(None, StructuringError(StructuringErrorKind.EMPTY_RESPONSE), usage, time_ms)

        try:
            data = parse_json_object(response.text)
        except ValueError as e:
            logger.warning(f"{task}: {e}; response starts {response.text[:300]!r}")
            return JsonOutcome(None, StructuringError(StructuringErrorKind.INVALID_JSON, str(e)), usage, time_ms)

        return JsonOutcome(data, None, usage, time_ms)

    def _to_recipe(self, outcome: JsonOutcome) -> StructuringOutcome:
        if outcome.error is not None:
            return StructuringOutcome(None, outcome.error, outcome.usage, outcome.time_ms)

        result = validate_recipe_payload(outcome.data)
        if result.issues:
            logger.warning(f"Dropped {len(result.issues)} malformed element(s): {'; '.join(result.issues[:5])}")

        if not result.valid:
            error = StructuringError(
                StructuringErrorKind.SCHEMA_INVALID,
                f"missing required fields: {', '.join(result.failed_fields)}",
                fields=result.failed_fields,
            )
            return StructuringOutcome(None, error, outcome.usage, outcome.time_ms, result.issues)

        recipe = result.recipe
        recipe.recipe_yield = normalize_servings(recipe.recipe_yield)
        return StructuringOutcome(recipe, None, outcome.usage, outcome.time_ms, result.issues)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
