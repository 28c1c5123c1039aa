"""Extraction of enclosed programs from a resolved segment arrangement."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment

from .config import EngineConfig, get_engine_config
from .geometry import LineSegment, Point, PointSnapper, loop_perimeter, point_in_polygon, signed_area
from .logging_utils import debug_log_call

logger = logging.getLogger(__name__)

Loop = Tuple[Point, ...]


@dataclass
class ProgramRequirement:
    """Named area target; ``location`` optionally pins it to the program containing that point."""

    name: str
    total_area: float
    location: Optional[Point] = None


@dataclass
class EnclosedProgram:
    boundary: Loop
    area: float
    perimeter: float
    holes: Tuple[Loop, ...] = ()
    name: Optional[str] = None

    @property
    def gross_area(self) -> float:
        return abs(signed_area(self.boundary))

    def contains(self, point: Point) -> bool:
        if not point_in_polygon(point, self.boundary):
            return False
        return not any(point_in_polygon(point, hole) for hole in self.holes)

    def edges(self) -> List[LineSegment]:
        result: List[LineSegment] = []
        for loop in (self.boundary,) + tuple(self.holes):
            count = len(loop)
            result.extend(LineSegment(loop[i], loop[(i + 1) % count]) for i in range(count))
        return result


def _strip_spikes(loop: List[Point]) -> List[Point]:
    changed = True
    while changed and len(loop) > 2:
        changed = False
        count = len(loop)
        for idx in range(count):
            if loop[(idx - 1) % count] == loop[(idx + 1) % count]:
                drop = {idx, (idx + 1) % count}
                loop = [point for pos, point in enumerate(loop) if pos not in drop]
                changed = True
                break
    return loop


class ProgramsFinder:
    """Walk the faces of a planar segment arrangement.

    Every directed half-edge ``u -> v`` is followed by the edge leaving ``v``
    that comes next clockwise after ``v -> u``, so each walk keeps its face
    on the left. Bounded faces come out counter-clockwise with positive
    area; the outer boundary of every connected component comes out
    clockwise and is either dropped or subtracted as a hole from the face
    that surrounds it.
    """

    def __init__(
        self,
        segments: Iterable[LineSegment],
        requirements: Iterable[ProgramRequirement] = (),
        *,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.segments = list(segments)
        self.requirements = list(requirements)
        self.config = config or get_engine_config()
        self._adjacency: Dict[Point, Set[Point]] = {}

    def _build_graph(self) -> None:
        snapper = PointSnapper(self.config.point_tolerance)
        self._adjacency.clear()
        for segment in self.segments:
            a = snapper.snap(segment.start)
            b = snapper.snap(segment.end)
            if a == b:
                continue
            self._adjacency.setdefault(a, set()).add(b)
            self._adjacency.setdefault(b, set()).add(a)

    @staticmethod
    def _angle(origin: Point, target: Point) -> float:
        return math.atan2(target.y - origin.y, target.x - origin.x)

    def _trace_faces(self) -> List[List[Point]]:
        ordered = {
            v: sorted(nbrs, key=lambda w, v=v: self._angle(v, w)) for v, nbrs in self._adjacency.items()
        }
        position = {v: {w: idx for idx, w in enumerate(nbrs)} for v, nbrs in ordered.items()}

        visited: Set[Tuple[Point, Point]] = set()
        loops: List[List[Point]] = []
        for start in sorted(ordered, key=Point.as_tuple):
            for first in ordered[start]:
                if (start, first) in visited:
                    continue
                loop: List[Point] = []
                a, b = start, first
                while (a, b) not in visited:
                    visited.add((a, b))
                    loop.append(a)
                    nbrs = ordered[b]
                    a, b = b, nbrs[position[b][a] - 1]
                loops.append(loop)
        return loops

    def _components(self) -> Dict[Point, int]:
        component: Dict[Point, int] = {}
        label = -1
        for root in sorted(self._adjacency, key=Point.as_tuple):
            if root in component:
                continue
            label += 1
            stack = [root]
            component[root] = label
            while stack:
                node = stack.pop()
                for nxt in self._adjacency[node]:
                    if nxt not in component:
                        component[nxt] = label
                        stack.append(nxt)
        return component

    def find_programs(self) -> List[EnclosedProgram]:
        tol = self.config.point_tolerance
        self._build_graph()
        if not self._adjacency:
            return []
        component = self._components()
        min_area = tol * tol

        faces: List[Tuple[int, EnclosedProgram]] = []
        outers: List[Tuple[int, Loop, float]] = []
        for walk in self._trace_faces():
            walk = _strip_spikes(walk)
            if len(walk) < 3:
                continue
            loop = tuple(walk)
            area = signed_area(loop)
            if area > min_area:
                program = EnclosedProgram(boundary=loop, area=area, perimeter=loop_perimeter(loop))
                faces.append((component[loop[0]], program))
            elif area < -min_area:
                outers.append((component[loop[0]], loop, -area))

        for comp, loop, area in outers:
            anchor = loop[0]
            containing = [
                program
                for face_comp, program in faces
                if face_comp != comp and point_in_polygon(anchor, program.boundary)
            ]
            if not containing:
                continue
            host = min(containing, key=lambda program: program.gross_area)
            host.holes = host.holes + (loop,)
            host.area -= area
            host.perimeter += loop_perimeter(loop)

        programs = [program for _, program in faces]
        match_requirements(programs, self.requirements, tolerance=self.config.area_match_tolerance)
        logger.info(
            "Found %d program(s) from %d segment(s), %d matched",
            len(programs),
            len(self.segments),
            sum(1 for program in programs if program.name is not None),
        )
        return programs


def match_requirements(
    programs: Sequence[EnclosedProgram],
    requirements: Sequence[ProgramRequirement],
    *,
    tolerance: Optional[float] = None,
) -> None:
    """Label ``programs`` in place with the names of ``requirements``.

    Requirements with a ``location`` claim the program containing it.
    The rest are paired one-to-one by smallest relative area difference;
    pairs whose difference exceeds ``tolerance`` stay unmatched.
    """

    for program in programs:
        program.name = None

    free_programs = list(range(len(programs)))
    pending: List[ProgramRequirement] = []
    for requirement in requirements:
        if requirement.location is None:
            pending.append(requirement)
            continue
        owner = next((i for i in free_programs if programs[i].contains(requirement.location)), None)
        if owner is None:
            logger.debug("Requirement %r: no free program at %s", requirement.name, requirement.location)
            continue
        programs[owner].name = requirement.name
        free_programs.remove(owner)

    pending = [r for r in pending if r.total_area > 0.0]
    if not free_programs or not pending:
        return

    cost = np.array(
        [
            [abs(programs[i].area - r.total_area) / r.total_area for r in pending]
            for i in free_programs
        ],
        dtype=float,
    )
    rows, cols = linear_sum_assignment(cost)
    for row, col in zip(rows, cols):
        if tolerance is not None and cost[row, col] > tolerance:
            continue
        programs[free_programs[row]].name = pending[col].name


def areas_by_name(programs: Iterable[EnclosedProgram]) -> Dict[Optional[str], float]:
    totals: Dict[Optional[str], float] = {}
    for program in programs:
        totals[program.name] = totals.get(program.name, 0.0) + program.area
    return totals


@debug_log_call(logger)
def find_programs(
    segments: Iterable[LineSegment],
    requirements: Iterable[ProgramRequirement] = (),
    *,
    config: Optional[EngineConfig] = None,
) -> List[EnclosedProgram]:
    return ProgramsFinder(segments, requirements, config=config).find_programs()
