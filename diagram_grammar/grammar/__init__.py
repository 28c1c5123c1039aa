"""Shape grammar rules: learning from examples and generative application."""

from __future__ import annotations

from .rule import GrammarRule
from .store import RuleStore, RuleSummary
from .transform import LearnedExample, RuleTransform, fit_transform

__all__ = [
    "GrammarRule",
    "LearnedExample",
    "RuleStore",
    "RuleSummary",
    "RuleTransform",
    "fit_transform",
]
