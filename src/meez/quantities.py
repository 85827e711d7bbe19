"""
Meez - Quantity handling.

Parses textual ingredient amounts ("1 1/2", "½", "2-3"), scales them and
formats them back as cook-friendly fractions. Used to derive the scaled
ingredient list for the scaling rewriter, and to tell whether an
instruction step states an explicit quantity at all.

Ingredient names and units are matched on whole words, never substrings
("egg" must not match "eggplant").
"""

import math
import re
from dataclasses import dataclass
from fractions import Fraction

from meez.models import StructuredIngredient

VULGAR_FRACTIONS = {
    "¼": Fraction(1, 4), "½": Fraction(1, 2), "¾": Fraction(3, 4),
    "⅓": Fraction(1, 3), "⅔": Fraction(2, 3), "⅕": Fraction(1, 5),
    "⅛": Fraction(1, 8), "⅜": Fraction(3, 8), "⅝": Fraction(5, 8), "⅞": Fraction(7, 8),
}

NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "dozen": 12, "half": Fraction(1, 2),
}

# Units and ingredient names that come in whole pieces only
INDIVISIBLE_UNITS = {
    "egg", "eggs", "clove", "cloves", "can", "cans", "stick", "sticks",
    "piece", "pieces", "whole", "sprig", "sprigs", "leaf", "leaves",
    "bay leaf", "bay leaves", "pod", "pods", "head", "heads", "sheet", "sheets",
}
INDIVISIBLE_NAMES = {
    ("egg",), ("eggs",), ("bay", "leaf"), ("bay", "leaves"),
    ("cinnamon", "stick"), ("cinnamon", "sticks"), ("star", "anise"),
    ("cardamom", "pod"), ("cardamom", "pods"), ("clove",), ("cloves",),
    ("egg", "yolk"), ("egg", "yolks"), ("egg", "white"), ("egg", "whites"),
    ("lime",), ("limes",), ("lemon",), ("lemons",),
}

# Display fractions, checked in order
_NICE_FRACTIONS = [
    Fraction(0), Fraction(1, 8), Fraction(1, 4), Fraction(1, 3), Fraction(3, 8),
    Fraction(1, 2), Fraction(5, 8), Fraction(2, 3), Fraction(3, 4), Fraction(7, 8), Fraction(1),
]
_VULGAR_PATTERN = "[" + "".join(VULGAR_FRACTIONS) + "]"
_NUMBER_PATTERN = rf"(?:\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?{_VULGAR_PATTERN}?|\d*\.\d+|{_VULGAR_PATTERN})"
_AMOUNT_RE = re.compile(rf"^\s*({_NUMBER_PATTERN})(?:\s*(?:-|–|to)\s*({_NUMBER_PATTERN}))?\s*$")
_EXPLICIT_QUANTITY_RE = re.compile(
    rf"\d|{_VULGAR_PATTERN}|\b(" + "|".join(NUMBER_WORDS) + r")\b",
    re.IGNORECASE,
)
_WORD_RE = re.compile(r"[a-z]+")


@dataclass
class ParsedQuantity:
    """A parsed amount. ``high`` is set for ranges like "2-3"."""

    low: Fraction
    high: Fraction | None
    original: str


def _parse_number(token: str) -> Fraction:
    token = token.strip()
    if " " in token:
        whole, frac = token.split(None, 1)
        return Fraction(int(whole)) + Fraction(frac)
    if token in VULGAR_FRACTIONS:
        return VULGAR_FRACTIONS[token]
    if token and token[-1] in VULGAR_FRACTIONS:
        return Fraction(token[:-1]) + VULGAR_FRACTIONS[token[-1]]
    return Fraction(token)


def parse_amount(amount: str | None) -> ParsedQuantity | None:
    """
    Parse a textual amount.

    Examples:
        "2" -> 2
        "1 1/2" -> 3/2
        "1½" -> 3/2
        "0.75" -> 3/4
        "2-3" -> 2 (high 3)
        "to taste" -> None
    """
    if amount is None:
        return None
    text = str(amount).strip().lower()
    if text in NUMBER_WORDS:
        return ParsedQuantity(Fraction(NUMBER_WORDS[text]), None, str(amount))

    match = _AMOUNT_RE.match(text)
    if not match:
        return None
    try:
        low = _parse_number(match.group(1))
        high = _parse_number(match.group(2)) if match.group(2) else None
    except (ValueError, ZeroDivisionError):
        return None
    return ParsedQuantity(low, high, str(amount))


def format_amount(value: Fraction | float) -> str:
    """
    Format a quantity the way a cook writes it.

    Examples:
        0.5 -> "1/2"
        1.5 -> "1 1/2"
        2 -> "2"
        0.3333 -> "1/3"
        2.2 -> "2.2"
    """
    value = Fraction(value).limit_denominator(1000)
    if value <= 0:
        return "0"

    whole = math.floor(value)
    remainder = value - whole
    nearest = min(_NICE_FRACTIONS, key=lambda f: abs(f - remainder))

    if abs(nearest - remainder) > Fraction(1, 50):
        return f"{float(value):.2f}".rstrip("0").rstrip(".")

    if nearest == 1:
        whole, nearest = whole + 1, Fraction(0)
    if nearest == 0:
        return str(whole)
    frac = f"{nearest.numerator}/{nearest.denominator}"
    return f"{whole} {frac}" if whole else frac


def _words(text: str | None) -> tuple[str, ...]:
    return tuple(_WORD_RE.findall((text or "").lower()))


def _contains_phrase(words: tuple[str, ...], phrase: tuple[str, ...]) -> bool:
    n = len(phrase)
    return any(words[i:i + n] == phrase for i in range(len(words) - n + 1))


def is_indivisible(ingredient: StructuredIngredient) -> bool:
    """Whether the ingredient only comes in whole pieces."""
    unit = " ".join(_words(ingredient.unit))
    if unit in INDIVISIBLE_UNITS:
        return True
    if ingredient.unit:
        return False
    name_words = _words(ingredient.name)
    return any(_contains_phrase(name_words, phrase) for phrase in INDIVISIBLE_NAMES)


def _scale_value(value: Fraction, factor: Fraction, round_up: bool) -> Fraction:
    scaled = value * factor
    return Fraction(math.ceil(scaled)) if round_up else scaled


def scale_ingredient(ingredient: StructuredIngredient, factor: float) -> StructuredIngredient:
    """
    Scale one ingredient's amount. Unparseable amounts ("to taste") are
    kept as they are; whole-piece ingredients round up.
    """
    parsed = parse_amount(ingredient.amount)
    if parsed is None:
        return ingredient.model_copy()

    ratio = Fraction(factor).limit_denominator(1000)
    round_up = is_indivisible(ingredient)
    low = _scale_value(parsed.low, ratio, round_up)
    if parsed.high is not None:
        high = _scale_value(parsed.high, ratio, round_up)
        amount = f"{format_amount(low)}-{format_amount(high)}"
    else:
        amount = format_amount(low)

    return ingredient.model_copy(update={"amount": amount})


def scale_ingredients(ingredients: list[StructuredIngredient], factor: float) -> list[StructuredIngredient]:
    """Scale every ingredient, keeping order."""
    if not math.isfinite(factor) or factor <= 0:
        raise ValueError("Scaling factor must be a positive number")
    return [scale_ingredient(ing, factor) for ing in ingredients]


def has_explicit_quantity(step: str) -> bool:
    """Whether an instruction step states a number ("2 cups", "½ tsp", "two eggs")."""
    return bool(_EXPLICIT_QUANTITY_RE.search(step or ""))
