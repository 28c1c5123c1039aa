"""Diagram model: walls, rules, program requirements and derived programs.

In shape grammar terms the collection of wall entities is the current
description of the diagram. Every mutation goes through :class:`DiagramModel`
so that listeners are told exactly once per logical edit, after the derived
state has settled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .config import EngineConfig, get_engine_config
from .errors import GeometryParsingFailure, RuleLearningIncompatibility
from .geometry import LineSegment, Point, PolylinesGeometry
from .grammar import GrammarRule, RuleStore, RuleSummary
from .programs import EnclosedProgram, ProgramRequirement, areas_by_name, find_programs, match_requirements
from .resolver import resolve

logger = logging.getLogger(__name__)

ModelListener = Callable[["DiagramModel"], None]
PointLike = Union[Point, Sequence[float]]


def _as_point(value: PointLike) -> Point:
    if isinstance(value, Point):
        return value
    x, y = value
    return Point(x, y)


@dataclass
class WallEntity:
    """User-drawn partition: a polyline geometry plus a thickness."""

    thickness: float = 1.0
    geometry: PolylinesGeometry = field(default_factory=PolylinesGeometry)

    def add_point_to_geometry(self, point: Point) -> None:
        self.geometry.add_point(point)

    def delete_segment(self, first: int, second: int) -> bool:
        return self.geometry.delete_segment(first, second)

    def line_segments(self) -> List[LineSegment]:
        return self.geometry.convert_to_line_segments()


class DiagramModel:
    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config
        self._walls: List[WallEntity] = []
        self._requirements: List[ProgramRequirement] = []
        self._resolved: List[LineSegment] = []
        self._programs: List[EnclosedProgram] = []
        self._rules = RuleStore(config)
        self._listeners: List[ModelListener] = []

    @property
    def config(self) -> EngineConfig:
        return self._config if self._config is not None else get_engine_config()

    @property
    def wall_entities(self) -> Tuple[WallEntity, ...]:
        return tuple(self._walls)

    @property
    def programs(self) -> Tuple[EnclosedProgram, ...]:
        return tuple(self._programs)

    @property
    def resolved_segments(self) -> Tuple[LineSegment, ...]:
        return tuple(self._resolved)

    @property
    def program_requirements(self) -> Tuple[ProgramRequirement, ...]:
        return tuple(self._requirements)

    def subscribe(self, listener: ModelListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ModelListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _on_model_changed(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # -- walls -----------------------------------------------------------

    def create_new_wall_entity(self, thickness: float = 1.0) -> int:
        self._walls.append(WallEntity(thickness=float(thickness)))
        self._on_model_changed()
        return len(self._walls) - 1

    def add_point_to_wall_entity_at_index(self, point: PointLike, index: int) -> None:
        """Append ``point`` to the polyline of the wall at ``index``."""

        if not 0 <= index < len(self._walls):
            logger.warning("Ignoring point for missing wall entity %d", index)
            return
        self._walls[index].add_point_to_geometry(_as_point(point))
        self._on_model_changed()

    def delete_segments_from_wall_entities_at_indexes(
        self, segments_to_delete: Iterable[Tuple[int, int, int]]
    ) -> None:
        """Delete segments given as ``(wall index, point index, next point index)``.

        Entries that do not name an existing segment are skipped.
        """

        touched = set()
        for wall_index, first, second in segments_to_delete:
            first, second = sorted((first, second))
            if not 0 <= wall_index < len(self._walls):
                logger.warning("Ignoring segment delete for missing wall entity %d", wall_index)
                continue
            if self._walls[wall_index].delete_segment(first, second):
                touched.add(wall_index)
            else:
                logger.warning(
                    "Ignoring segment delete %d-%d in wall entity %d", first, second, wall_index
                )
        if not touched:
            return
        for wall_index in touched:
            self._walls[wall_index].geometry.prune()
        self._on_model_changed()

    def remove_all_walls_and_programs(self) -> None:
        self._walls.clear()
        self._resolved = []
        self._programs = []
        self._on_model_changed()

    # -- programs --------------------------------------------------------

    def set_program_requirements(self, requirements: Iterable[ProgramRequirement]) -> None:
        self._requirements = list(requirements)
        match_requirements(
            self._programs, self._requirements, tolerance=self.config.area_match_tolerance
        )
        self._on_model_changed()

    def resolve_programs(self) -> None:
        logger.debug("Resolving programs for %d wall entities", len(self._walls))
        config = self.config
        segments = resolve(self._walls, tol=config.point_tolerance)
        programs = find_programs(segments, self._requirements, config=config)
        self._resolved = segments
        self._programs = programs
        self._on_model_changed()

    def total_enclosed_area(self) -> float:
        return sum(program.area for program in self._programs)

    def total_perimeter_length(self) -> float:
        """Length of the distinct segments that bound at least one program."""

        edges: Set[LineSegment] = set()
        for program in self._programs:
            edges.update(program.edges())
        return sum(edge.length for edge in edges)

    def program_areas_by_name(self) -> Dict[Optional[str], float]:
        return areas_by_name(self._programs)

    # -- rules -----------------------------------------------------------

    def create_new_rule_from_example(
        self, left_geometry: PolylinesGeometry, right_geometry: PolylinesGeometry
    ) -> str:
        rule_id = self._rules.create_rule_from_example(left_geometry, right_geometry)
        self._on_model_changed()
        return rule_id

    def learn_from_example_for_rule(
        self, left_geometry: PolylinesGeometry, right_geometry: PolylinesGeometry, rule_id: str
    ) -> float:
        try:
            residual = self._rules.learn_from_example(left_geometry, right_geometry, rule_id)
        except GeometryParsingFailure as exc:
            raise RuleLearningIncompatibility("the geometries do not match the rule", rule_id) from exc
        self._on_model_changed()
        return residual

    def apply_rule_given_left_hand_geometry(
        self, left_geometry: PolylinesGeometry, rule_id: str
    ) -> PolylinesGeometry:
        return self._rules.apply_rule(left_geometry, rule_id)

    def get_rule_by_id(self, rule_id: str) -> GrammarRule:
        return self._rules.get_rule_by_id(rule_id)

    def current_rules_info(self) -> List[RuleSummary]:
        return self._rules.current_rules_info()
