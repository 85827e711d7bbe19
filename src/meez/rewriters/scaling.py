"""
Meez - Scaling Rewriter.

Adjusts the quantities written inside instruction steps after the
ingredient list was scaled to a new yield. Only explicit quantities
change: a step without any number ("Add the onion") is returned exactly
as it was, whatever the model answered for it.
"""

import logging

from meez.llm.prompts import build_scaling_prompts
from meez.models import StructuredIngredient
from meez.quantities import has_explicit_quantity, scale_ingredients
from meez.rewriters.substitution import DEFAULT_MAX_REWRITE_PROMPT_CHARS, RewriteResult, coerce_steps
from meez.structuring.engine import StructuringEngine

logger = logging.getLogger(__name__)


class ScalingRewriter:
    """Instruction rewrite for serving-size changes."""

    def __init__(self, engine: StructuringEngine, *, max_prompt_chars: int = DEFAULT_MAX_REWRITE_PROMPT_CHARS):
        self._engine = engine
        self._max_prompt_chars = max_prompt_chars

    async def rewrite(
        self,
        instructions: list[str],
        original_ingredients: list[StructuredIngredient],
        scaled_ingredients: list[StructuredIngredient],
    ) -> RewriteResult:
        """Rewrite step quantities from the original to the scaled ingredient list."""
        if not instructions or not any(has_explicit_quantity(step) for step in instructions):
            return RewriteResult(list(instructions))

        system_prompt, user_prompt = build_scaling_prompts(instructions, original_ingredients, scaled_ingredients)
        outcome = await self._engine.generate_json(
            system_prompt,
            user_prompt,
            task="scaling",
            max_prompt_chars=self._max_prompt_chars,
        )
        if outcome.error is not None:
            return RewriteResult(None, outcome.error, outcome.usage, outcome.time_ms)

        steps, error = coerce_steps(outcome.data.get("scaledInstructions"), len(instructions), "scaledInstructions")
        if error is not None:
            logger.warning(f"Scaling rewrite rejected: {error.detail}")
            return RewriteResult(None, error, outcome.usage, outcome.time_ms)

        restored = 0
        for index, original in enumerate(instructions):
            if not has_explicit_quantity(original) and steps[index] != original:
                steps[index] = original
                restored += 1
        if restored:
            logger.info(f"Restored {restored} step(s) without explicit quantities")

        return RewriteResult(steps, None, outcome.usage, outcome.time_ms)

    async def rewrite_by_factor(
        self,
        instructions: list[str],
        ingredients: list[StructuredIngredient],
        factor: float,
    ) -> tuple[list[StructuredIngredient], RewriteResult]:
        """Scale the ingredient list by ``factor`` and rewrite the steps to match."""
        scaled = scale_ingredients(ingredients, factor)
        result = await self.rewrite(instructions, ingredients, scaled)
        return scaled, result
