"""Collection of grammar rules keyed by identifier."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from ..config import EngineConfig, get_engine_config
from ..errors import RuleNotFoundError
from ..geometry import PolylinesGeometry
from ..printer import format_shape
from .rule import GrammarRule

logger = logging.getLogger(__name__)

RuleListener = Callable[[str], None]


@dataclass(frozen=True)
class RuleSummary:
    """Read-only catalog row describing one rule."""

    rule_id: str
    left_shape: str
    right_shape: str
    example_count: int
    residual: float


def _summarize(rule: GrammarRule) -> RuleSummary:
    return RuleSummary(
        rule_id=rule.rule_id,
        left_shape=format_shape(rule.left_shape),
        right_shape=format_shape(rule.right_shape),
        example_count=len(rule.examples),
        residual=rule.transform.residual,
    )


class RuleStore:
    """Owns every :class:`GrammarRule` and keeps the rule catalog current.

    Listeners registered with :meth:`subscribe` are called with the rule id
    after a rule has been created or updated.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config
        self._rules: Dict[str, GrammarRule] = {}
        self._summaries: Dict[str, RuleSummary] = {}
        self._listeners: List[RuleListener] = []

    @property
    def config(self) -> EngineConfig:
        return self._config if self._config is not None else get_engine_config()

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[GrammarRule]:
        return iter(list(self._rules.values()))

    def subscribe(self, listener: RuleListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: RuleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def create_rule_from_example(
        self, left_geometry: PolylinesGeometry, right_geometry: PolylinesGeometry
    ) -> str:
        rule = GrammarRule.from_example(left_geometry, right_geometry, config=self.config)
        self._rules[rule.rule_id] = rule
        self.rule_updated(rule.rule_id)
        return rule.rule_id

    def get_rule_by_id(self, rule_id: str) -> GrammarRule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise RuleNotFoundError(rule_id) from None

    def learn_from_example(
        self, left_geometry: PolylinesGeometry, right_geometry: PolylinesGeometry, rule_id: str
    ) -> float:
        rule = self.get_rule_by_id(rule_id)
        residual = rule.learn_from_example(left_geometry, right_geometry, config=self.config)
        self.rule_updated(rule_id)
        return residual

    def apply_rule(self, left_geometry: PolylinesGeometry, rule_id: str) -> PolylinesGeometry:
        return self.get_rule_by_id(rule_id).apply_to_geometry(left_geometry, config=self.config)

    def rule_updated(self, rule_id: str) -> None:
        rule = self.get_rule_by_id(rule_id)
        self._summaries[rule_id] = _summarize(rule)
        logger.debug("Rule catalog refreshed for %s", rule_id)
        for listener in list(self._listeners):
            listener(rule_id)

    def current_rules_info(self) -> List[RuleSummary]:
        return [self._summaries[rule_id] for rule_id in self._rules]
