"""Tests for substitution and scaling instruction rewrites."""

import asyncio

from conftest import FakeGenerativeService
from meez.errors import StructuringErrorKind
from meez.models import StructuredIngredient
from meez.rewriters import IngredientChange, ScalingRewriter, SubstitutionRewriter
from meez.structuring import StructuringEngine

STEPS = [
    "Season the chicken thighs with salt.",
    "Sear the chicken in butter until golden.",
    "Serve with rice.",
]


def rewriter_for(cls, *responses):
    service = FakeGenerativeService(*responses)
    return cls(StructuringEngine(service)), service


class TestSubstitutionRewriter:
    def test_replacement_keeps_step_count(self):
        rewritten = [
            "Season the tofu with salt.",
            "Sear the tofu in butter until golden.",
            "Serve with rice.",
        ]
        rewriter, service = rewriter_for(
            SubstitutionRewriter,
            {"rewrittenInstructions": rewritten, "newTitle": "Golden Tofu"},
        )

        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("chicken thighs", "tofu")]))

        assert result.ok
        assert result.instructions == rewritten
        assert result.new_title == "Golden Tofu"
        assert result.usage.total_tokens == 200
        assert service.requests[0].task == "substitution"
        assert 'REPLACE: "chicken thighs" -> "tofu"' in service.requests[0].system_prompt

    def test_removal_prompt(self):
        rewriter, service = rewriter_for(
            SubstitutionRewriter,
            {"rewrittenInstructions": ["Season with salt.", "Sear in butter.", "Serve with rice."], "newTitle": None},
        )

        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("chicken thighs")]))

        assert result.ok
        assert result.new_title is None
        assert 'REMOVE: "chicken thighs"' in service.requests[0].system_prompt

    def test_step_count_mismatch_rejected(self):
        rewriter, _ = rewriter_for(
            SubstitutionRewriter,
            {"rewrittenInstructions": ["Season and sear the tofu.", "Serve with rice."]},
        )

        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("chicken thighs", "tofu")]))

        assert not result.ok
        assert result.instructions is None
        assert result.error.kind is StructuringErrorKind.STEP_COUNT_MISMATCH

    def test_non_array_rejected(self):
        rewriter, _ = rewriter_for(SubstitutionRewriter, {"rewrittenInstructions": "Season the tofu."})
        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("chicken thighs", "tofu")]))
        assert result.error.kind is StructuringErrorKind.SCHEMA_INVALID

    def test_blank_changes_skip_model(self):
        rewriter, service = rewriter_for(SubstitutionRewriter)
        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("  ", "tofu")]))

        assert result.ok
        assert result.instructions == STEPS
        assert service.calls == 0

    def test_no_steps_skip_model(self):
        rewriter, service = rewriter_for(SubstitutionRewriter)
        result = asyncio.run(rewriter.rewrite([], [IngredientChange("chicken", "tofu")]))
        assert result.instructions == []
        assert service.calls == 0

    def test_model_error_passed_through(self):
        rewriter, _ = rewriter_for(SubstitutionRewriter, "not json at all")
        result = asyncio.run(rewriter.rewrite(STEPS, [IngredientChange("chicken thighs", "tofu")]))
        assert result.error.kind is StructuringErrorKind.INVALID_JSON


class TestScalingRewriter:
    """Only explicit quantities change."""

    ORIGINAL = [
        StructuredIngredient(name="flour", amount="2", unit="cups"),
        StructuredIngredient(name="onion", amount="1"),
    ]
    SCALED = [
        StructuredIngredient(name="flour", amount="1", unit="cup"),
        StructuredIngredient(name="onion", amount="1/2"),
    ]

    def test_vague_step_restored(self):
        rewriter, service = rewriter_for(
            ScalingRewriter,
            {"scaledInstructions": ["Add 1 cup flour", "Add half the onion"]},
        )

        result = asyncio.run(
            rewriter.rewrite(["Add 2 cups flour", "Add the onion"], self.ORIGINAL, self.SCALED)
        )

        assert result.ok
        assert result.instructions == ["Add 1 cup flour", "Add the onion"]
        assert service.requests[0].task == "scaling"

    def test_no_explicit_quantities_skip_model(self):
        rewriter, service = rewriter_for(ScalingRewriter)
        steps = ["Add the onion", "Stir well"]

        result = asyncio.run(rewriter.rewrite(steps, self.ORIGINAL, self.SCALED))

        assert result.instructions == steps
        assert service.calls == 0

    def test_step_count_mismatch_rejected(self):
        rewriter, _ = rewriter_for(ScalingRewriter, {"scaledInstructions": ["Add 1 cup flour and the onion"]})
        result = asyncio.run(
            rewriter.rewrite(["Add 2 cups flour", "Add the onion"], self.ORIGINAL, self.SCALED)
        )
        assert result.error.kind is StructuringErrorKind.STEP_COUNT_MISMATCH

    def test_rewrite_by_factor_rounds_eggs_up(self):
        rewriter, service = rewriter_for(
            ScalingRewriter,
            {"scaledInstructions": ["Whisk 2 eggs with 1/2 cup milk."]},
        )
        ingredients = [
            StructuredIngredient(name="eggs", amount="3"),
            StructuredIngredient(name="milk", amount="1", unit="cup"),
        ]

        scaled, result = asyncio.run(
            rewriter.rewrite_by_factor(["Whisk 3 eggs with 1 cup milk."], ingredients, 0.5)
        )

        assert [i.amount for i in scaled] == ["2", "1/2"]
        assert result.instructions == ["Whisk 2 eggs with 1/2 cup milk."]
        assert "Scaled ingredients" in service.requests[0].system_prompt
