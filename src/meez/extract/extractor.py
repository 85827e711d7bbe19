"""
Meez - Content Extractor.

Reduces raw HTML to two plain-text regions (ingredients, instructions)
plus whatever recipe metadata the page states, without any model call.

Strategy per region, first hit wins:
1. schema.org Recipe (JSON-LD, microdata)
2. Known recipe-plugin / theme selectors (WPRM, Tasty, EasyRecipe, ...)
3. Heading adjacency ("Ingredients" heading followed by a list)

Several candidates may match; each is scored and the single most
plausible block is kept. Unrelated candidates are never concatenated.
When neither region is found, the visible page text is kept as
``fallback_text`` so structuring can still work from raw page content.

extract() is pure and never raises for parseable HTML.
"""

import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from meez.extract.normalizer import (
    clean_text,
    extract_image_url,
    extract_instructions_text,
    format_duration,
    normalize_ingredients,
    normalize_servings,
)
from meez.extract.structured_data import find_recipe_data
from meez.models import ExtractedContent

logger = logging.getLogger(__name__)

# =============================================================================
# Selectors
# =============================================================================

INGREDIENT_SELECTORS = [
    "[itemprop=recipeIngredient]",
    "[itemprop=ingredients]",
    ".wprm-recipe-ingredient",
    ".tasty-recipes-ingredients li",
    ".easyrecipe-ingredient",
    ".mv-create-ingredients li",
    ".recipe-ingredients li",
    ".ingredients li",
    ".ingredient-list li",
]

INSTRUCTION_SELECTORS = [
    "[itemprop=recipeInstructions]",
    ".wprm-recipe-instruction-text",
    ".wprm-recipe-instructions li",
    ".tasty-recipes-instructions li",
    ".easyrecipe-instructions li",
    ".mv-create-instructions li",
    ".recipe-instructions li",
    ".instructions li",
    ".direction-list li",
    ".directions li",
    # Block-level containers without list items
    ".wprm-recipe-instructions",
    ".tasty-recipes-instructions",
    ".easyrecipe-instructions-content",
    ".recipe-instructions",
    ".instructions",
    ".directions",
]

TIPS_SELECTORS = [
    ".wprm-recipe-notes",
    ".tasty-recipes-notes",
    ".mv-create-notes",
    ".recipe-notes",
]

_INGREDIENT_HEADING_RE = re.compile(r"^\s*ingredients?\b", re.IGNORECASE)
_INSTRUCTION_HEADING_RE = re.compile(
    r"^\s*(instructions?|directions?|method|preparation|steps)\b", re.IGNORECASE
)

# Elements whose text is never recipe content
_NOISE_TAGS = ["script", "style", "noscript", "template", "svg", "iframe",
               "nav", "header", "footer", "aside", "form", "button"]

# =============================================================================
# Scoring
# =============================================================================

_QUANTITY_START_RE = re.compile(
    r"^\s*(\d|[¼½¾⅓⅔⅛⅜⅝⅞]|a\s|an\s|one\s|two\s|three\s|four\s|half\s|pinch|dash|handful)",
    re.IGNORECASE,
)
_UNIT_RE = re.compile(
    r"\b(cups?|tbsps?|tablespoons?|tsps?|teaspoons?|oz|ounces?|lbs?|pounds?|grams?|g|kg|ml|"
    r"l|liters?|litres?|cloves?|pinch|cans?|sticks?|slices?|bunch|sprigs?|quarts?|pints?)\b",
    re.IGNORECASE,
)
_COOKING_VERB_RE = re.compile(
    r"\b(add|bake|boil|combine|cook|cover|cut|drain|fold|fry|heat|mix|place|pour|preheat|"
    r"remove|roast|serve|simmer|stir|transfer|whisk|season|chop|slice|blend|spread|top|let)\b",
    re.IGNORECASE,
)


def _score_ingredient_lines(lines: list[str]) -> float:
    score = 0.0
    for line in lines:
        if len(line) > 160:
            score -= 0.5
        elif _QUANTITY_START_RE.match(line) or _UNIT_RE.search(line):
            score += 1.0
        else:
            score += 0.25
    return score


def _score_instruction_lines(lines: list[str]) -> float:
    score = 0.0
    for line in lines:
        if len(line) < 15:
            score += 0.1
        elif _COOKING_VERB_RE.search(line):
            score += 1.0 + min(len(line), 400) / 400
        else:
            score += 0.3
    return score


@dataclass
class _Candidate:
    lines: list[str]
    score: float
    source: str


# =============================================================================
# Extraction
# =============================================================================


def extract(html: str, base_url: str | None = None) -> ExtractedContent:
    """
    Extract ingredient and instruction text from a recipe page.

    Args:
        html: Raw page HTML
        base_url: Page URL, used to resolve relative links in structured data

    Returns:
        ExtractedContent; regions that could not be located are empty strings
    """
    if not html or not html.strip():
        return ExtractedContent()

    recipe_data = find_recipe_data(html, base_url) or {}
    soup = BeautifulSoup(html, "html.parser")

    ingredients = normalize_ingredients(
        recipe_data.get("recipeIngredient") or recipe_data.get("ingredients")
    )
    instructions = extract_instructions_text(recipe_data.get("recipeInstructions"))
    if ingredients or instructions:
        logger.debug(f"Structured data: {len(ingredients)} ingredients, {len(instructions)} steps")

    if not ingredients:
        ingredients = _best_block(
            _selector_candidates(soup, INGREDIENT_SELECTORS, _score_ingredient_lines)
            + _heading_candidates(soup, _INGREDIENT_HEADING_RE, _score_ingredient_lines)
        )
    if not instructions:
        instructions = _best_block(
            _selector_candidates(soup, INSTRUCTION_SELECTORS, _score_instruction_lines)
            + _heading_candidates(soup, _INSTRUCTION_HEADING_RE, _score_instruction_lines)
        )

    fallback_text = ""
    if not ingredients and not instructions:
        fallback_text = _visible_text(soup)
        logger.info(f"No recipe regions located; keeping {len(fallback_text)} chars of page text")

    return ExtractedContent(
        ingredients_text="\n".join(ingredients),
        instructions_text="\n".join(instructions),
        title=clean_text(recipe_data.get("name")) or _page_title(soup),
        description=clean_text(recipe_data.get("description")) or _meta_content(soup, "description"),
        image=extract_image_url(recipe_data.get("image")) or _meta_content(soup, "og:image"),
        recipe_yield=normalize_servings(recipe_data.get("recipeYield") or recipe_data.get("yield")),
        prep_time=format_duration(recipe_data.get("prepTime")),
        cook_time=format_duration(recipe_data.get("cookTime")),
        total_time=format_duration(recipe_data.get("totalTime")),
        tips=_tips_text(soup),
        fallback_text=fallback_text,
    )


def _element_lines(element: Tag) -> list[str]:
    """Lines of one container: list items, else paragraphs, else text lines."""
    items = element.find_all("li")
    if items:
        lines = [clean_text(li.get_text(" ")) for li in items]
    else:
        paragraphs = element.find_all("p")
        if paragraphs:
            lines = [clean_text(p.get_text(" ")) for p in paragraphs]
        else:
            for br in element.find_all("br"):
                br.replace_with("\n")
            lines = [clean_text(line) for line in element.get_text().split("\n")]
    return [line for line in lines if line]


def _is_leaf(element: Tag) -> bool:
    return element.find(["li", "p", "div", "ul", "ol"]) is None


def _selector_candidates(soup: BeautifulSoup, selectors: list[str], scorer) -> list[_Candidate]:
    """
    Item-level matches (leaf elements) of one selector form one block, since
    they share one markup scheme. Container matches give one block each.
    """
    candidates: list[_Candidate] = []
    seen: set[tuple[str, ...]] = set()

    for selector in selectors:
        matches = soup.select(selector)
        if not matches:
            continue

        if len(matches) > 1 and all(_is_leaf(el) for el in matches):
            blocks = [[clean_text(el.get_text(" ")) for el in matches]]
        else:
            blocks = [_element_lines(el) for el in matches]

        for lines in blocks:
            lines = [line for line in lines if line]
            key = tuple(lines)
            if not lines or key in seen:
                continue
            seen.add(key)
            candidates.append(_Candidate(lines, scorer(lines), selector))

    return candidates


def _heading_candidates(soup: BeautifulSoup, heading_re: re.Pattern, scorer) -> list[_Candidate]:
    """Lists that directly follow a heading such as "Ingredients" or "Method"."""
    candidates: list[_Candidate] = []
    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "strong", "b", "p"]):
        text = clean_text(heading.get_text(" "))
        if not text or len(text) > 60 or not heading_re.match(text):
            continue
        following = heading.find_next(["ul", "ol"])
        if following is None:
            continue
        lines = _element_lines(following)
        if lines:
            candidates.append(_Candidate(lines, scorer(lines), f"heading:{text[:20]}"))
    return candidates


def _best_block(candidates: list[_Candidate]) -> list[str]:
    """Highest-scoring candidate; earlier candidates win ties."""
    best: _Candidate | None = None
    for candidate in candidates:
        if candidate.score <= 0:
            continue
        if best is None or candidate.score > best.score:
            best = candidate
    if best is None:
        return []
    logger.debug(f"Picked block from {best.source} ({len(best.lines)} lines, score {best.score:.1f})")
    return best.lines


def _page_title(soup: BeautifulSoup) -> str | None:
    title = _meta_content(soup, "og:title")
    if title:
        return title
    if soup.title and soup.title.string:
        return clean_text(soup.title.string) or None
    h1 = soup.find("h1")
    if h1 is None:
        return None
    return clean_text(h1.get_text(" ")) or None


def _meta_content(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
    if tag is None:
        return None
    return clean_text(tag.get("content")) or None


def _tips_text(soup: BeautifulSoup) -> str | None:
    for selector in TIPS_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            lines = _element_lines(element)
            if lines:
                return "\n".join(lines)
    return None


def _visible_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    for tag in body.find_all(_NOISE_TAGS):
        tag.decompose()
    lines = [clean_text(line) for line in body.get_text("\n").split("\n")]
    return "\n".join(line for line in lines if line)
