"""
Meez - Substitution Rewriter.

Rewrites instructions after ingredients are replaced or removed. The
output must have exactly as many steps as the input; a response that
adds, drops or merges steps is rejected with STEP_COUNT_MISMATCH.
"""

import logging
from dataclasses import dataclass, field

from meez.errors import StructuringError, StructuringErrorKind
from meez.llm.prompts import build_substitution_prompts
from meez.models import Usage
from meez.structuring.engine import StructuringEngine

logger = logging.getLogger(__name__)

DEFAULT_MAX_REWRITE_PROMPT_CHARS = 100_000


@dataclass(frozen=True)
class IngredientChange:
    """Replace ``from_name`` with ``to``; ``to=None`` removes the ingredient."""

    from_name: str
    to: str | None = None


@dataclass
class RewriteResult:
    """Rewritten steps (same length as the input), or a typed error."""

    instructions: list[str] | None
    error: StructuringError | None = None
    usage: Usage = field(default_factory=Usage)
    time_ms: float = 0.0
    new_title: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def coerce_steps(raw, expected: int, key: str) -> tuple[list[str] | None, StructuringError | None]:
    """Validate a rewritten step list: an array of text, same length as the input."""
    if not isinstance(raw, list):
        return None, StructuringError(
            StructuringErrorKind.SCHEMA_INVALID,
            f"{key} is {type(raw).__name__}, expected array",
            fields=(key,),
        )

    steps = []
    for item in raw:
        if isinstance(item, str):
            steps.append(item.strip())
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            steps.append(str(item))
        else:
            return None, StructuringError(
                StructuringErrorKind.SCHEMA_INVALID,
                f"{key} contains {type(item).__name__}",
                fields=(key,),
            )

    if len(steps) != expected:
        return None, StructuringError(
            StructuringErrorKind.STEP_COUNT_MISMATCH,
            f"{key}: got {len(steps)} steps, expected {expected}",
        )
    return steps, None


class SubstitutionRewriter:
    """Instruction rewrite for ingredient substitutions and removals."""

    def __init__(self, engine: StructuringEngine, *, max_prompt_chars: int = DEFAULT_MAX_REWRITE_PROMPT_CHARS):
        self._engine = engine
        self._max_prompt_chars = max_prompt_chars

    async def rewrite(self, instructions: list[str], changes: list[IngredientChange]) -> RewriteResult:
        """
        Rewrite instructions for a set of ingredient changes.

        Changes with a blank ``from_name`` are ignored. With no steps or no
        usable changes, the instructions come back unchanged without a
        model call.
        """
        usable = [c for c in changes if c.from_name and c.from_name.strip()]
        skipped = len(changes) - len(usable)
        if skipped:
            logger.warning(f"Skipping {skipped} substitution(s) with an empty ingredient name")

        if not instructions or not usable:
            return RewriteResult(list(instructions))

        system_prompt, user_prompt = build_substitution_prompts(instructions, usable)
        outcome = await self._engine.generate_json(
            system_prompt,
            user_prompt,
            task="substitution",
            max_prompt_chars=self._max_prompt_chars,
        )
        if outcome.error is not None:
            return RewriteResult(None, outcome.error, outcome.usage, outcome.time_ms)

        steps, error = coerce_steps(outcome.data.get("rewrittenInstructions"), len(instructions), "rewrittenInstructions")
        if error is not None:
            logger.warning(f"Substitution rewrite rejected: {error.detail}")
            return RewriteResult(None, error, outcome.usage, outcome.time_ms)

        new_title = outcome.data.get("newTitle")
        return RewriteResult(
            steps,
            None,
            outcome.usage,
            outcome.time_ms,
            new_title=new_title.strip() if isinstance(new_title, str) and new_title.strip() else None,
        )
