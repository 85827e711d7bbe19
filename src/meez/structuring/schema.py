"""
Meez - Recipe schema validation.

Turns the model's parsed JSON into a CanonicalRecipe, or a list of the
required fields that are missing. Never trusts the response shape:

- Required arrays must be arrays.
- Each element is validated on its own; malformed elements are dropped
  and recorded as issues instead of failing the whole recipe.
- A legacy flat ``ingredients`` list is wrapped in one "Main" group.
- The result must have a title, at least one ingredient and at least one
  instruction.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from meez.models import CanonicalRecipe, IngredientGroup, Nutrition, StructuredIngredient, Substitution

logger = logging.getLogger(__name__)

# JSON key -> CanonicalRecipe field, for optional text fields
TEXT_FIELDS = {
    "title": "title",
    "shortDescription": "short_description",
    "description": "description",
    "image": "image",
    "recipeYield": "recipe_yield",
    "prepTime": "prep_time",
    "cookTime": "cook_time",
    "totalTime": "total_time",
    "substitutions_text": "substitutions_text",
    "tips": "tips",
}

OPTIONAL_REPORTED_FIELDS = ("recipeYield", "prepTime", "cookTime", "totalTime")


@dataclass
class SchemaResult:
    """Validated recipe, or the required fields that failed."""

    recipe: CanonicalRecipe | None
    issues: list[str] = field(default_factory=list)
    failed_fields: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return self.recipe is not None


def validate_recipe_payload(data: Any) -> SchemaResult:
    """Validate a parsed model response against the canonical recipe shape."""
    if not isinstance(data, dict):
        return SchemaResult(None, [f"response is {type(data).__name__}, not an object"], ("root",))

    issues: list[str] = []
    values: dict[str, Any] = {}

    for key, attr in TEXT_FIELDS.items():
        values[attr] = _text_value(data.get(key), key, issues)

    groups = _validate_groups(data, issues)
    instructions = _validate_instructions(data.get("instructions"), issues)
    nutrition = _validate_nutrition(data.get("nutrition"), issues)

    failed = []
    if not values["title"]:
        failed.append("title")
    if not any(group.ingredients for group in groups):
        failed.append("ingredients")
    if not instructions:
        failed.append("instructions")

    if failed:
        return SchemaResult(None, issues, tuple(failed))

    missing_optional = [key for key in OPTIONAL_REPORTED_FIELDS if not data.get(key)]
    if missing_optional:
        logger.info(f"Structured recipe missing optional fields: {', '.join(missing_optional)}")

    recipe = CanonicalRecipe(
        ingredient_groups=groups,
        instructions=instructions,
        nutrition=nutrition,
        **values,
    )
    return SchemaResult(recipe, issues)


def _text_value(value: Any, key: str, issues: list[str]) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    issues.append(f"{key}: expected text, got {type(value).__name__}")
    return None


def _validate_groups(data: dict, issues: list[str]) -> list[IngredientGroup]:
    raw_groups = data.get("ingredientGroups")
    if raw_groups is None and isinstance(data.get("ingredients"), list):
        raw_groups = [{"name": "Main", "ingredients": data["ingredients"]}]

    if raw_groups is None:
        return []
    if not isinstance(raw_groups, list):
        issues.append(f"ingredientGroups: expected array, got {type(raw_groups).__name__}")
        return []

    groups = []
    for g_index, raw_group in enumerate(raw_groups):
        if not isinstance(raw_group, dict):
            issues.append(f"ingredientGroups[{g_index}]: expected object")
            continue

        raw_ingredients = raw_group.get("ingredients")
        if not isinstance(raw_ingredients, list):
            issues.append(f"ingredientGroups[{g_index}].ingredients: expected array")
            continue

        ingredients = []
        for i_index, raw_ingredient in enumerate(raw_ingredients):
            where = f"ingredientGroups[{g_index}].ingredients[{i_index}]"
            ingredient = _validate_ingredient(raw_ingredient, where, issues)
            if ingredient is not None:
                ingredients.append(ingredient)

        if not ingredients:
            issues.append(f"ingredientGroups[{g_index}]: no valid ingredients")
            continue

        name = raw_group.get("name")
        groups.append(IngredientGroup(
            name=name.strip() if isinstance(name, str) and name.strip() else "Main",
            ingredients=ingredients,
        ))

    return groups


def _validate_ingredient(raw: Any, where: str, issues: list[str]) -> StructuredIngredient | None:
    if not isinstance(raw, dict):
        issues.append(f"{where}: expected object, got {type(raw).__name__}")
        return None

    raw = dict(raw)
    subs_key = "suggested_substitutions" if "suggested_substitutions" in raw else "suggestedSubstitutions"
    raw_subs = raw.pop(subs_key, None)

    try:
        ingredient = StructuredIngredient.model_validate(raw)
    except ValidationError as e:
        issues.append(f"{where}: {e.errors()[0].get('msg', 'invalid')}")
        return None

    if isinstance(raw_subs, list):
        substitutions = []
        for s_index, raw_sub in enumerate(raw_subs):
            try:
                substitutions.append(Substitution.model_validate(raw_sub))
            except ValidationError:
                issues.append(f"{where}.suggested_substitutions[{s_index}]: invalid")
        ingredient.suggested_substitutions = substitutions or None
    elif raw_subs is not None:
        issues.append(f"{where}.suggested_substitutions: expected array")

    return ingredient


def _validate_instructions(raw: Any, issues: list[str]) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        issues.append(f"instructions: expected array, got {type(raw).__name__}")
        return []

    steps = []
    for index, step in enumerate(raw):
        if isinstance(step, str) and step.strip():
            steps.append(step.strip())
        else:
            issues.append(f"instructions[{index}]: expected non-empty text")
    return steps


def _validate_nutrition(raw: Any, issues: list[str]) -> Nutrition | None:
    if raw is None:
        return None
    try:
        nutrition = Nutrition.model_validate(raw)
    except ValidationError:
        issues.append("nutrition: invalid")
        return None
    if nutrition.calories is None and nutrition.protein is None:
        return None
    return nutrition
