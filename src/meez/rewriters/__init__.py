"""Instruction rewrites for ingredient substitution and serving-size scaling."""

from .scaling import ScalingRewriter
from .substitution import IngredientChange, RewriteResult, SubstitutionRewriter

__all__ = [
    "IngredientChange",
    "RewriteResult",
    "ScalingRewriter",
    "SubstitutionRewriter",
]
