"""Model-mediated structuring into the canonical recipe schema."""

from .engine import JsonOutcome, StructuringEngine, StructuringOutcome
from .json_utils import parse_json_object, strip_markdown_fences
from .schema import SchemaResult, validate_recipe_payload

__all__ = [
    "JsonOutcome",
    "SchemaResult",
    "StructuringEngine",
    "StructuringOutcome",
    "parse_json_object",
    "strip_markdown_fences",
    "validate_recipe_payload",
]
