"""API endpoints for recipe ingestion and instruction rewrites."""

import base64
import binascii
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from meez.models import ImagePayload, InputKind, RawInput, StructuredIngredient
from meez.pipeline import PipelineResult
from meez.rewriters import IngredientChange, RewriteResult
from meez.services import IngestionServices
from meez.text import detect_input_type

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recipes"])

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,", re.IGNORECASE)


def get_services(request: Request) -> IngestionServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


# =============================================================================
# Request/Response Models
# =============================================================================


class ParseRequest(BaseModel):
    """A URL or pasted recipe text; the type is detected."""

    input: str = Field(min_length=1)
    force_new: bool = False


class ImageInput(BaseModel):
    data_base64: str
    mime_type: str = "image/jpeg"


class ParseImagesRequest(BaseModel):
    images: list[ImageInput] = Field(min_length=1)
    force_new: bool = False


class ParseVideoRequest(BaseModel):
    """Caption or transcript from a video, with optional origin."""

    transcript: str = Field(min_length=1)
    source_url: str | None = None
    platform: str | None = None
    force_new: bool = False


class ChangeInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_name: str = Field(alias="from")
    to: str | None = None  # None removes the ingredient


class SubstitutionRequest(BaseModel):
    instructions: list[str]
    changes: list[ChangeInput] = Field(min_length=1)


class ScaleRequest(BaseModel):
    """
    Either explicit original/scaled ingredient lists, or the current
    ingredients plus a scaling factor.
    """

    instructions: list[str]
    original_ingredients: list[StructuredIngredient] | None = None
    scaled_ingredients: list[StructuredIngredient] | None = None
    ingredients: list[StructuredIngredient] | None = None
    factor: float | None = None


class ErrorBody(BaseModel):
    stage: str
    message: str


class ParseResponse(BaseModel):
    success: bool
    request_id: str
    input_kind: str
    status: str
    recipe: dict | None = None
    error: ErrorBody | None = None
    fetch_method_used: str | None = None
    from_cache: bool = False
    similar_match: dict | None = None
    timings_ms: dict[str, float] = {}
    usage: dict[str, int] = {}
    cost: dict = {}
    stages: list[str] = []


class RewriteResponse(BaseModel):
    success: bool
    instructions: list[str] | None = None
    new_title: str | None = None
    scaled_ingredients: list[dict] | None = None
    error: ErrorBody | None = None
    usage: dict[str, int] = {}
    time_ms: float = 0.0


def _parse_response(result: PipelineResult) -> ParseResponse:
    return ParseResponse(success=result.ok, **result.to_json())


def _rewrite_response(
    result: RewriteResult,
    stage: str,
    scaled: list[StructuredIngredient] | None = None,
) -> RewriteResponse:
    return RewriteResponse(
        success=result.ok,
        instructions=result.instructions,
        new_title=result.new_title,
        scaled_ingredients=[i.model_dump(mode="json") for i in scaled] if scaled is not None else None,
        error=ErrorBody(stage=stage, message=result.error.message) if result.error else None,
        usage={
            "prompt_tokens": result.usage.prompt_tokens,
            "output_tokens": result.usage.output_tokens,
        },
        time_ms=round(result.time_ms, 1),
    )


def _decode_image(image: ImageInput) -> ImagePayload:
    data = image.data_base64.strip()
    mime_type = image.mime_type
    match = _DATA_URL_RE.match(data)
    if match:
        mime_type = match.group("mime")
        data = data[match.end():]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Image data is not valid base64")
    if not raw:
        raise HTTPException(status_code=400, detail="Image data is empty")
    return ImagePayload(raw, mime_type)


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/recipes/parse", response_model=ParseResponse)
async def parse_recipe(
    req: ParseRequest,
    services: IngestionServices = Depends(get_services),
) -> ParseResponse:
    """
    Parse a recipe from a URL or pasted text.

    Bare domains ("example.com/pasta") are treated as https URLs.
    """
    text = req.input.strip()
    if detect_input_type(text) is InputKind.URL:
        if not re.match(r"^https?://", text, re.IGNORECASE):
            text = "https://" + text
        raw_input = RawInput.url(text)
    else:
        raw_input = RawInput.raw_text(req.input)

    logger.info(f"Parse request ({raw_input.kind.value}, {len(req.input)} chars)")
    result = await services.pipeline.run(raw_input, force_new=req.force_new)
    return _parse_response(result)


@router.post("/recipes/parse-images", response_model=ParseResponse)
async def parse_images(
    req: ParseImagesRequest,
    services: IngestionServices = Depends(get_services),
) -> ParseResponse:
    """Parse a recipe from one or more photographed pages."""
    payloads = [_decode_image(image) for image in req.images]
    raw_input = RawInput.image(payloads[0].data, payloads[0].mime_type) if len(payloads) == 1 \
        else RawInput.images(payloads)

    logger.info(f"Parse request ({len(payloads)} image(s))")
    result = await services.pipeline.run(raw_input, force_new=req.force_new)
    return _parse_response(result)


@router.post("/recipes/parse-video", response_model=ParseResponse)
async def parse_video(
    req: ParseVideoRequest,
    services: IngestionServices = Depends(get_services),
) -> ParseResponse:
    """Parse a recipe from a video caption or transcript."""
    raw_input = RawInput.video(req.transcript, source_url=req.source_url, platform=req.platform)
    result = await services.pipeline.run(raw_input, force_new=req.force_new)
    return _parse_response(result)


@router.post("/recipes/rewrite-substitution", response_model=RewriteResponse)
async def rewrite_substitution(
    req: SubstitutionRequest,
    services: IngestionServices = Depends(get_services),
) -> RewriteResponse:
    """Rewrite instructions after replacing or removing ingredients."""
    changes = [IngredientChange(c.from_name, c.to) for c in req.changes]
    result = await services.substitution_rewriter.rewrite(req.instructions, changes)
    return _rewrite_response(result, "substitution")


@router.post("/recipes/scale-instructions", response_model=RewriteResponse)
async def scale_instructions(
    req: ScaleRequest,
    services: IngestionServices = Depends(get_services),
) -> RewriteResponse:
    """Rewrite step quantities for a new serving size."""
    rewriter = services.scaling_rewriter

    if req.factor is not None:
        if not req.ingredients:
            raise HTTPException(status_code=400, detail="A factor needs the current ingredients")
        try:
            scaled, result = await rewriter.rewrite_by_factor(req.instructions, req.ingredients, req.factor)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _rewrite_response(result, "scaling", scaled)

    if req.original_ingredients is None or req.scaled_ingredients is None:
        raise HTTPException(
            status_code=400,
            detail="Provide original_ingredients and scaled_ingredients, or ingredients and factor",
        )
    result = await rewriter.rewrite(req.instructions, req.original_ingredients, req.scaled_ingredients)
    return _rewrite_response(result, "scaling")
