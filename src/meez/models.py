"""
Meez - Data models.

Pipeline values (inputs, fetch/extract results, cache entries) are plain
dataclasses. The canonical recipe is a pydantic model because it crosses
the model boundary, the storage boundary and the HTTP API; its JSON uses
the camelCase keys the structuring prompt asks for.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field

from meez.errors import FetchError


# =============================================================================
# Inputs
# =============================================================================


class InputKind(str, Enum):
    """Kind of source a recipe is ingested from."""

    URL = "url"
    RAW_TEXT = "raw_text"
    IMAGE = "image"
    IMAGES = "images"
    VIDEO = "video"


@dataclass(frozen=True)
class ImagePayload:
    """One uploaded image."""

    data: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class VideoPayload:
    """Caption or transcript derived from a video, plus where it came from."""

    transcript: str
    source_url: str | None = None
    platform: str | None = None


@dataclass(frozen=True)
class RawInput:
    """One ingestion request. Created once, never mutated."""

    kind: InputKind
    payload: str | ImagePayload | tuple[ImagePayload, ...] | VideoPayload

    def __post_init__(self) -> None:
        expected = {
            InputKind.URL: str,
            InputKind.RAW_TEXT: str,
            InputKind.IMAGE: ImagePayload,
            InputKind.IMAGES: tuple,
            InputKind.VIDEO: VideoPayload,
        }[self.kind]
        if not isinstance(self.payload, expected):
            raise TypeError(
                f"{self.kind.value} input needs a {expected.__name__} payload, "
                f"got {type(self.payload).__name__}"
            )
        if self.kind is InputKind.IMAGES:
            if not self.payload or not all(isinstance(p, ImagePayload) for p in self.payload):
                raise TypeError("images input needs a non-empty tuple of ImagePayload")

    @classmethod
    def url(cls, url: str) -> "RawInput":
        return cls(InputKind.URL, url)

    @classmethod
    def raw_text(cls, text: str) -> "RawInput":
        return cls(InputKind.RAW_TEXT, text)

    @classmethod
    def image(cls, data: bytes, mime_type: str = "image/jpeg") -> "RawInput":
        return cls(InputKind.IMAGE, ImagePayload(data, mime_type))

    @classmethod
    def images(cls, images: list[ImagePayload]) -> "RawInput":
        return cls(InputKind.IMAGES, tuple(images))

    @classmethod
    def video(
        cls,
        transcript: str,
        source_url: str | None = None,
        platform: str | None = None,
    ) -> "RawInput":
        return cls(InputKind.VIDEO, VideoPayload(transcript, source_url, platform))

    @property
    def image_payloads(self) -> tuple[ImagePayload, ...]:
        if self.kind is InputKind.IMAGE:
            return (self.payload,)
        if self.kind is InputKind.IMAGES:
            return self.payload
        return ()


# =============================================================================
# Fetch / Extract
# =============================================================================


class FetchMethod(str, Enum):
    """Strategy that produced the HTML."""

    DIRECT = "direct"
    FALLBACK_PROXY = "fallback_proxy"


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch. ``error`` is set when no HTML was obtained."""

    html_content: str
    method_used: FetchMethod
    error: FetchError | None = None
    final_url: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExtractedContent:
    """Plain-text regions located in a page.

    Either region may be empty. ``fallback_text`` holds the visible page
    text when neither region could be located.
    """

    ingredients_text: str = ""
    instructions_text: str = ""
    title: str | None = None
    description: str | None = None
    image: str | None = None
    recipe_yield: str | None = None
    prep_time: str | None = None
    cook_time: str | None = None
    total_time: str | None = None
    tips: str | None = None
    fallback_text: str = ""

    @property
    def has_regions(self) -> bool:
        return bool(self.ingredients_text or self.instructions_text)

    @property
    def is_empty(self) -> bool:
        return not self.has_regions and not self.fallback_text


# =============================================================================
# Canonical recipe
# =============================================================================


def _amount_to_text(value):
    """Keep amounts textual; models sometimes answer with bare numbers."""
    if isinstance(value, bool):
        raise ValueError("amount must be text or a number")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else f"{value:g}"
    if isinstance(value, str):
        return value.strip() or None
    return value


# Amounts, units and nutrition values stay textual ("1 1/2", "to taste", "350 kcal").
Text = Annotated[str | None, BeforeValidator(_amount_to_text)]


class _RecipeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class Substitution(_RecipeModel):
    """A suggested replacement for one ingredient."""

    name: str = Field(min_length=1)
    amount: Text = None
    unit: Text = None
    description: Text = None


class StructuredIngredient(_RecipeModel):
    """One ingredient line. ``amount`` keeps its original textual form."""

    name: str = Field(min_length=1)
    amount: Text = None
    unit: Text = None
    preparation: Text = None
    suggested_substitutions: list[Substitution] | None = Field(
        default=None,
        validation_alias=AliasChoices("suggested_substitutions", "suggestedSubstitutions"),
        serialization_alias="suggested_substitutions",
    )

    def display_text(self) -> str:
        """'2 cups flour' style rendering used in prompts."""
        parts = [self.amount or "", self.unit or "", self.name]
        return " ".join(p for p in parts if p).strip()


class IngredientGroup(_RecipeModel):
    """Named, ordered list of ingredients ("Main", "For the sauce", ...)."""

    name: str = "Main"
    ingredients: list[StructuredIngredient] = Field(default_factory=list)


class Nutrition(_RecipeModel):
    calories: Text = None
    protein: Text = None


class CanonicalRecipe(_RecipeModel):
    """The canonical structured recipe.

    ``id`` is only assigned once persisted. ``instructions`` order is the
    cooking order; rewriters replace elements positionally and never
    reorder or resize the list.
    """

    id: str | None = None
    title: str | None = None
    description: str | None = None
    short_description: str | None = Field(default=None, alias="shortDescription")
    image: str | None = None
    source_url: str | None = Field(default=None, alias="sourceUrl")
    recipe_yield: str | None = Field(default=None, alias="recipeYield")
    prep_time: str | None = Field(default=None, alias="prepTime")
    cook_time: str | None = Field(default=None, alias="cookTime")
    total_time: str | None = Field(default=None, alias="totalTime")
    ingredient_groups: list[IngredientGroup] = Field(default_factory=list, alias="ingredientGroups")
    instructions: list[str] = Field(default_factory=list)
    substitutions_text: str | None = None
    tips: str | None = None
    nutrition: Nutrition | None = None
    embedding: list[float] | None = None

    @property
    def ingredients(self) -> list[StructuredIngredient]:
        """All ingredients across groups, in display order."""
        return [ing for group in self.ingredient_groups for ing in group.ingredients]

    def to_json(self, *, include_embedding: bool = False) -> dict:
        exclude = None if include_embedding else {"embedding"}
        return self.model_dump(by_alias=True, exclude=exclude, mode="json")


# =============================================================================
# Storage / similarity / usage
# =============================================================================


@dataclass(frozen=True)
class CacheEntry:
    """Authoritative structured recipe for one fingerprint."""

    fingerprint: str
    recipe: CanonicalRecipe
    created_at: datetime
    source_kind: InputKind | None = None


@dataclass(frozen=True)
class SimilarityMatch:
    """Ephemeral near-duplicate hit. ``similarity`` is in [0, 1]."""

    recipe: CanonicalRecipe
    similarity: float
    key: str | None = None


@dataclass(frozen=True)
class Usage:
    """Token usage of one or more model calls."""

    prompt_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.output_tokens

