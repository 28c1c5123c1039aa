"""Error types raised by the grammar engine."""

from __future__ import annotations

from typing import Optional


class GeometryParsingFailure(ValueError):
    """Raised when a geometry cannot be read as a shape for an operation."""


class RuleApplicationFailure(RuntimeError):
    """Raised when a matched rule cannot be evaluated for an instance."""


class RuleLearningIncompatibility(ValueError):
    """Raised when an example contradicts the topology of an existing rule."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(message)
        self.rule_id = rule_id


class RuleNotFoundError(KeyError):
    """Raised when a rule id is not present in the store."""

    def __init__(self, rule_id: str):
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"no rule with id {self.rule_id!r}"
