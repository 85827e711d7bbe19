"""
Meez - Prompts.

One system prompt defines the canonical recipe JSON shape and parsing
rules; each source kind gets its own user prompt. The two rewrite
prompts (substitution, scaling) carry their own system prompts.
"""

from meez.models import ExtractedContent, StructuredIngredient

# =============================================================================
# Structuring
# =============================================================================

RECIPE_SYSTEM_PROMPT = """You are an expert recipe parser. Extract the recipe from the provided content and return it as a single JSON object.

## Output shape

{
  "title": "string | null",
  "shortDescription": "string | null",
  "ingredientGroups": [
    {
      "name": "string",
      "ingredients": [
        {
          "name": "string",
          "amount": "string | null",
          "unit": "string | null",
          "preparation": "string | null",
          "suggested_substitutions": [
            {"name": "string", "amount": "string | null", "unit": "string | null", "description": "string | null"}
          ] | null
        }
      ]
    }
  ],
  "instructions": ["one step per element, without numbering"],
  "substitutions_text": "string | null",
  "recipeYield": "string | null",
  "prepTime": "string | null",
  "cookTime": "string | null",
  "totalTime": "string | null",
  "nutrition": {"calories": "string | null", "protein": "string | null"} | null,
  "tips": "string | null"
}

## Rules

1. **Every ingredient**: Extract all ingredients, including ones only mentioned inside instruction steps.
2. **Groups**: When the source has distinct ingredient sections ("For the sauce", "Dressing", "Garnish"), keep one group per section with a short name. Otherwise use a single group named "Main". Ingredients only used for serving go in a group named "Serving".
3. **Amounts stay textual**: Copy amounts as written ("1 1/2", "2-3", "to taste"). Never invent an amount; use null.
4. **Preparation**: Put preparation ("finely chopped", "melted", "room temperature") in `preparation`. `name` holds only the core ingredient ("carrots", not "finely chopped carrots").
5. **No inference**: If a field is not stated in the content, use null. Do not guess times or nutrition.
6. **Times**: Human-readable ("15 minutes", "1 hour 30 minutes"), never ISO 8601 ("PT15M"). Keep ranges as given ("30-45 minutes").
7. **Yield**: Concise ("4 servings", "12 cookies", "4-6 servings"). If none is stated, estimate from context (4 chicken thighs = 4 servings).
8. **Instructions**: Keep the source order. Each step is 1-2 sentences; split long steps. If a step says "all the sauce ingredients", list those ingredients in the step.
9. **Substitutions**: For each ingredient suggest 1-2 realistic substitutions as complete objects, or null if none makes sense.
10. **Clean content**: Drop brand names, promotional text, social media handles and hashtags.
11. **Title**: If the source has no title, write a concise descriptive one.
12. **shortDescription**: Under 10 words, vivid and plain ("Cheesy quesadillas with smoky adobo ranch"). Null if there is not enough context.
13. **Tips**: Cooking tips, equipment advice and swaps from notes sections go in `tips`. No promotional text.

Output ONLY the JSON object. No commentary."""


def build_text_prompt(text: str) -> str:
    """User prompt for pasted recipe text."""
    return f"""Parse this recipe text.

---
RECIPE TEXT:
---
{text}"""


def format_extracted_content(content: ExtractedContent) -> str:
    """
    Render extracted page regions as the structuring source text.

    Returns "" when the page yielded nothing usable. When no regions were
    located, the visible page text is passed on as raw page content.
    """
    if content.is_empty:
        return ""

    header = "\n".join([
        f"Title: {content.title or 'N/A'}",
        f"Prep Time: {content.prep_time or 'N/A'}",
        f"Cook Time: {content.cook_time or 'N/A'}",
        f"Total Time: {content.total_time or 'N/A'}",
        f"Yield: {content.recipe_yield or 'N/A'}",
    ])

    if not content.has_regions:
        return f"{header}\n\nRaw page content:\n{content.fallback_text}"

    sections = [
        header,
        f"Ingredients:\n{content.ingredients_text or '(not found on page)'}",
        f"Instructions:\n{content.instructions_text or '(not found on page)'}",
    ]
    if content.tips:
        sections.append(f"Tips and Notes:\n{content.tips}")
    return "\n\n".join(sections)


def build_url_prompt(source_text: str) -> str:
    """User prompt for content extracted from a web page."""
    return f"""The following content was extracted from a recipe web page. Sections may be incomplete or contain page noise; rely on the content, not the labels.

---
PAGE CONTENT:
---
{source_text}"""


def build_video_prompt(caption: str, platform: str | None = None) -> str:
    """User prompt for a video caption or transcript."""
    where = f"a {platform} video" if platform else "a cooking video"
    return f"""The following text is a caption or transcript from {where}. Parse it into the recipe JSON format.

Ingredients are often only mentioned inside the steps ("add carrots, sweet potato and zucchini"); extract them as ingredient objects. Ignore social media noise like "Follow for more!" or "Link in bio!".

---
VIDEO CAPTION TO PARSE:
---
{caption}"""


IMAGE_PROMPT = """The attached image(s) show a recipe (a cookbook page, a recipe card or a screenshot). Read all visible recipe text across the images in order and parse it into the recipe JSON format. Ignore page numbers, headers and unrelated text."""


# =============================================================================
# Substitution rewrite
# =============================================================================


def _alternate_names(name: str) -> list[str]:
    """Other ways a removed ingredient may be referred to in the steps."""
    base = name.split()[-1]
    names = []
    if base.lower() != name.lower():
        names.append(base)
    names.append(f"grated {base}")
    return names


def build_substitution_prompts(instructions: list[str], changes: list) -> tuple[str, str]:
    """
    System and user prompt for rewriting steps after ingredient changes.

    ``changes`` are IngredientChange values; ``to=None`` removes the ingredient.
    """
    change_lines = []
    for change in changes:
        if change.to:
            change_lines.append(f'REPLACE: "{change.from_name}" -> "{change.to}"')
        else:
            aliases = ", ".join(f'"{alias}"' for alias in _alternate_names(change.from_name))
            change_lines.append(
                f'REMOVE: "{change.from_name}"\nALSO REMOVE if referred to as: {aliases}'
            )

    system_prompt = f"""You are an expert recipe editor. Rewrite the cooking instructions to reflect these ingredient changes.

{chr(10).join(change_lines)}

Rules:
1. REMOVE: eliminate every mention and use of the ingredient as if it was never there. Adjust wording, prep and timings.
2. REPLACE: use the substitute instead, adjusting wording, prep and timings where needed.
3. Return exactly one rewritten step for each original step, in the same order. Keep a step unchanged if the change does not affect it. Do not number the steps.
4. Write natural instructions without phrases like "omit" or "instead".
5. Suggest a newTitle only if a defining ingredient (one that appears in the dish name, the main protein or featured fruit) was replaced or removed; otherwise null.

Respond ONLY with valid JSON:
{{"rewrittenInstructions": ["..."], "newTitle": "string | null"}}"""

    user_prompt = "ORIGINAL_INSTRUCTIONS:\n" + "\n".join(f"- {step}" for step in instructions)
    return system_prompt, user_prompt


# =============================================================================
# Scaling rewrite
# =============================================================================


def _ingredient_list(ingredients: list[StructuredIngredient]) -> str:
    return ", ".join(ing.display_text() for ing in ingredients)


def build_scaling_prompts(
    instructions: list[str],
    original_ingredients: list[StructuredIngredient],
    scaled_ingredients: list[StructuredIngredient],
) -> tuple[str, str]:
    """System and user prompt for adjusting step quantities to a new yield."""
    system_prompt = f"""You are an expert recipe editor. Rewrite recipe instructions to reflect changed ingredient quantities.

Original ingredients: [{_ingredient_list(original_ingredients)}]
Scaled ingredients: [{_ingredient_list(scaled_ingredients)}]

Update ONLY quantities that are explicitly stated in a step (e.g. "2 cups flour"). Leave vague references like "the onion" or "some salt" exactly as written.

Rules:
- Use the exact scaled quantity when it is numeric.
- For whole or indivisible items (eggs, bay leaves, cinnamon sticks, whole spices) round up, never to a fraction of an item.
- Be precise: "Add 2 tbsp olive oil" scaled to 1 tbsp becomes "Add 1 tbsp olive oil".
- Return exactly one step for each original step, in the same order.

Respond ONLY with valid JSON:
{{"scaledInstructions": ["..."]}}"""

    user_prompt = "Original Instructions:\n" + "\n".join(f"- {step}" for step in instructions)
    return system_prompt, user_prompt
