"""Normalization utilities for schema.org recipe data."""

import html
import re

_ISO_DURATION_RE = re.compile(
    r"^P(?:(\d+)Y)?(?:(\d+)M)?(?:(\d+)W)?(?:(\d+)D)?"
    r"(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_DURATION_UNITS = ("year", "month", "week", "day", "hour", "minute")


def clean_text(value) -> str:
    """Unescape entities, drop tags left in JSON-LD strings, collapse whitespace."""
    if value is None:
        return ""
    text = html.unescape(str(value))
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def format_duration(duration) -> str | None:
    """
    Convert an ISO 8601 duration to human-readable text.

    Examples:
        PT30M -> "30 minutes"
        PT1H -> "1 hour"
        PT1H30M -> "1 hour 30 minutes"
        P1DT2H -> "1 day 2 hours"
        "45 mins" -> "45 mins" (already readable, kept)
    """
    if duration is None or duration == "":
        return None

    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        minutes = int(duration)
        return f"{minutes} minute{'s' if minutes != 1 else ''}" if minutes > 0 else None

    text = clean_text(duration)
    match = _ISO_DURATION_RE.match(text)
    if not match:
        # Not ISO - keep whatever the site wrote, if anything
        return text or None

    values = [int(g) if g else 0 for g in match.groups()[:6]]
    parts = [
        f"{value} {unit}{'s' if value > 1 else ''}"
        for value, unit in zip(values, _DURATION_UNITS)
        if value > 0
    ]
    return " ".join(parts) or None


def normalize_servings(recipe_yield) -> str | None:
    """
    Collapse a recipeYield to one readable value.

    Examples:
        ["4", "4 servings"] -> "4 servings"
        "4, 4 servings" -> "4 servings"
        6 -> "6"
        "Makes 12 cookies" -> "Makes 12 cookies"
    """
    if recipe_yield is None or isinstance(recipe_yield, bool):
        return None

    if isinstance(recipe_yield, (int, float)):
        return str(int(recipe_yield))

    if isinstance(recipe_yield, list):
        candidates = [clean_text(item) for item in recipe_yield if clean_text(item)]
    else:
        candidates = [part.strip() for part in clean_text(recipe_yield).split(",") if part.strip()]

    if not candidates:
        return None

    # Prefer the most descriptive variant ("4 servings" over "4")
    worded = [c for c in candidates if re.search(r"[a-zA-Z]", c)]
    return worded[0] if worded else candidates[0]


def extract_instructions_text(instructions) -> list[str]:
    """
    Extract instruction text from various formats.

    Handles:
        - Plain strings (split by numbered steps or newlines)
        - List of strings
        - List of HowToStep dicts with 'text' field
        - HowToSection dicts with nested 'itemListElement'
    """
    if not instructions:
        return []

    if isinstance(instructions, dict):
        instructions = [instructions]

    if isinstance(instructions, list):
        result = []
        for item in instructions:
            if isinstance(item, str):
                result.extend(extract_instructions_text(item))
            elif isinstance(item, dict):
                nested = item.get("itemListElement")
                if nested:
                    # HowToSection
                    result.extend(extract_instructions_text(nested))
                    continue
                text = clean_text(item.get("text") or item.get("name") or "")
                if text:
                    result.append(text)
        return result

    if isinstance(instructions, str):
        text = html.unescape(instructions)
        text = re.sub(r"<br\s*/?>|</p>|</li>", "\n", text, flags=re.IGNORECASE)
        text = re.sub(r"<[^>]+>", " ", text)

        # Numbered patterns like "1." or "1)"
        steps = re.split(r"(?:^|\n)\s*\d+[\.\)]\s+", text)
        if len([s for s in steps if s.strip()]) > 1:
            return [clean_text(s) for s in steps if s.strip()]

        steps = re.split(r"\n+", text)
        return [clean_text(s) for s in steps if clean_text(s)]

    return []


def normalize_ingredients(ingredients) -> list[str]:
    """
    Normalize ingredients to list of strings.

    Handles:
        - List of strings
        - List of dicts with 'name' or 'text' field
        - A single newline-separated string
    """
    if not ingredients:
        return []

    if isinstance(ingredients, str):
        ingredients = ingredients.split("\n")

    result = []
    for item in ingredients:
        if isinstance(item, str):
            text = clean_text(item)
        elif isinstance(item, dict):
            text = clean_text(item.get("text") or item.get("name") or "")
        else:
            continue
        if text:
            result.append(text)

    return result


def extract_image_url(image) -> str | None:
    """
    Extract image URL from various formats.

    Handles:
        - Plain URL string
        - Dict with 'url' field
        - List of images (take first)
    """
    if not image:
        return None

    if isinstance(image, str):
        return image if image.startswith("http") else None

    if isinstance(image, dict):
        url = image.get("url") or image.get("@url") or image.get("contentUrl")
        if isinstance(url, str) and url.startswith("http"):
            return url

    if isinstance(image, list) and len(image) > 0:
        return extract_image_url(image[0])

    return None
