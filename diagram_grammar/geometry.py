"""Planar geometry primitives shared by the resolver and the grammar engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import get_engine_config

Coord = Tuple[float, float]
GridKey = Tuple[int, int]


def _tolerance(tol: Optional[float]) -> float:
    if tol is None:
        return get_engine_config().point_tolerance
    return float(tol)


def _vec2(a: Coord, b: Coord) -> Coord:
    return b[0] - a[0], b[1] - a[1]


def _dot2(a: Coord, b: Coord) -> float:
    return a[0] * b[0] + a[1] * b[1]


def _cross2(a: Coord, b: Coord) -> float:
    return a[0] * b[1] - a[1] * b[0]


@dataclass(frozen=True)
class Point:
    """Immutable 2-D coordinate.

    Equality and hashing are exact. Geometric code compares points through
    :meth:`is_close` or a :class:`PointSnapper` with an explicit tolerance.
    """

    x: float
    y: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))

    def as_tuple(self) -> Coord:
        return (self.x, self.y)

    def as_complex(self) -> complex:
        return complex(self.x, self.y)

    @classmethod
    def from_complex(cls, value: complex) -> "Point":
        return cls(value.real, value.imag)

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def lerp(self, other: "Point", t: float) -> "Point":
        return Point(self.x + (other.x - self.x) * t, self.y + (other.y - self.y) * t)

    def is_close(self, other: "Point", tol: Optional[float] = None) -> bool:
        return self.distance_to(other) <= _tolerance(tol)

    def mirrored(self) -> "Point":
        """Reflection across the x axis (complex conjugate)."""

        return Point(self.x, -self.y)

    def __str__(self) -> str:
        return f"({self.x:g}, {self.y:g})"


class PointSnapper:
    """Hand out one representative :class:`Point` per tolerance cluster.

    A point within ``tol`` of an already seen point is replaced by the
    earliest such point, so coincident endpoints become the same value and
    downstream code can compare them exactly. Candidates are looked up in
    the neighbouring cells of a grid of pitch ``tol``.
    """

    def __init__(self, tol: Optional[float] = None) -> None:
        self.tol = _tolerance(tol)
        if self.tol <= 0.0:
            raise ValueError("point tolerance must be positive")
        self._cells: Dict[GridKey, List[Tuple[int, Point]]] = {}
        self._count = 0

    def _cell(self, point: Point) -> GridKey:
        return (math.floor(point.x / self.tol), math.floor(point.y / self.tol))

    def snap(self, point: Point) -> Point:
        cx, cy = self._cell(point)
        best: Optional[Tuple[int, Point]] = None
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for order, existing in self._cells.get((cx + dx, cy + dy), ()):
                    if existing.is_close(point, self.tol) and (best is None or order < best[0]):
                        best = (order, existing)
        if best is not None:
            return best[1]
        self._cells.setdefault((cx, cy), []).append((self._count, point))
        self._count += 1
        return point

    def snap_segment(self, segment: "LineSegment") -> "LineSegment":
        start = self.snap(segment.start)
        end = self.snap(segment.end)
        if start is segment.start and end is segment.end:
            return segment
        return LineSegment(start, end)


@dataclass(frozen=True)
class SegmentIntersection:
    kind: str  # "none", "point" or "overlap"
    points: Tuple[Point, ...] = ()

    @property
    def point(self) -> Optional[Point]:
        return self.points[0] if self.kind == "point" else None


_NO_INTERSECTION = SegmentIntersection("none")


@dataclass(frozen=True, eq=False)
class LineSegment:
    """Segment between two points, undirected for equality and hashing."""

    start: Point
    end: Point

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LineSegment):
            return NotImplemented
        return (self.start == other.start and self.end == other.end) or (
            self.start == other.end and self.end == other.start
        )

    def __hash__(self) -> int:
        return hash(frozenset((self.start, self.end)))

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)

    @property
    def midpoint(self) -> Point:
        return self.start.lerp(self.end, 0.5)

    def reversed(self) -> "LineSegment":
        return LineSegment(self.end, self.start)

    def is_degenerate(self, tol: Optional[float] = None) -> bool:
        return self.length <= _tolerance(tol)

    def point_at(self, t: float) -> Point:
        if t == 0.0:
            return self.start
        if t == 1.0:
            return self.end
        return self.start.lerp(self.end, t)

    def parameter_of(self, point: Point) -> float:
        """Return the projection parameter of ``point`` along the segment."""

        d = _vec2(self.start.as_tuple(), self.end.as_tuple())
        denom = _dot2(d, d)
        if denom == 0.0:
            return 0.0
        return _dot2(_vec2(self.start.as_tuple(), point.as_tuple()), d) / denom

    def distance_to_point(self, point: Point) -> float:
        t = min(1.0, max(0.0, self.parameter_of(point)))
        return self.point_at(t).distance_to(point)

    def contains_point(self, point: Point, tol: Optional[float] = None) -> bool:
        return self.distance_to_point(point) <= _tolerance(tol)

    def find_intersection(self, other: "LineSegment", tol: Optional[float] = None) -> SegmentIntersection:
        """Intersect two segments.

        Returns a ``point`` intersection (snapped to an existing endpoint when
        within tolerance), an ``overlap`` carrying the two ends of the shared
        collinear stretch, or ``none``.
        """

        tol = _tolerance(tol)
        len1 = self.length
        len2 = other.length
        if len1 <= tol or len2 <= tol:
            return _NO_INTERSECTION

        s1 = self.start.as_tuple()
        s2 = other.start.as_tuple()
        d1 = _vec2(s1, self.end.as_tuple())
        d2 = _vec2(s2, other.end.as_tuple())
        offset = _vec2(s1, s2)
        denom = _cross2(d1, d2)

        if abs(denom) <= 1e-12 * len1 * len2:
            if abs(_cross2(d1, offset)) / len1 > tol:
                return _NO_INTERSECTION
            t0 = self.parameter_of(other.start)
            t1 = self.parameter_of(other.end)
            lo = max(0.0, min(t0, t1))
            hi = min(1.0, max(t0, t1))
            if (hi - lo) * len1 > tol:
                return SegmentIntersection("overlap", (self.point_at(lo), self.point_at(hi)))
            for candidate in (other.start, other.end, self.start, self.end):
                if self.contains_point(candidate, tol) and other.contains_point(candidate, tol):
                    return SegmentIntersection("point", (candidate,))
            return _NO_INTERSECTION

        t = _cross2(offset, d2) / denom
        u = _cross2(offset, d1) / denom
        tol_t = tol / len1
        tol_u = tol / len2
        if t < -tol_t or t > 1.0 + tol_t or u < -tol_u or u > 1.0 + tol_u:
            return _NO_INTERSECTION
        if abs(t) <= tol_t:
            point = self.start
        elif abs(t - 1.0) <= tol_t:
            point = self.end
        elif abs(u) <= tol_u:
            point = other.start
        elif abs(u - 1.0) <= tol_u:
            point = other.end
        else:
            point = self.point_at(t)
        return SegmentIntersection("point", (point,))


def signed_area(loop: Sequence[Point]) -> float:
    """Shoelace area of a closed loop; positive when counter-clockwise."""

    total = 0.0
    count = len(loop)
    for idx in range(count):
        a = loop[idx]
        b = loop[(idx + 1) % count]
        total += a.x * b.y - b.x * a.y
    return 0.5 * total


def loop_perimeter(loop: Sequence[Point]) -> float:
    count = len(loop)
    if count < 2:
        return 0.0
    return sum(loop[idx].distance_to(loop[(idx + 1) % count]) for idx in range(count))


def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """Even-odd ray casting test; points on the boundary are unspecified."""

    inside = False
    count = len(polygon)
    for idx in range(count):
        a = polygon[idx]
        b = polygon[(idx + 1) % count]
        if (a.y > point.y) != (b.y > point.y):
            x_cross = a.x + (point.y - a.y) * (b.x - a.x) / (b.y - a.y)
            if point.x < x_cross:
                inside = not inside
    return inside


def extent(points: Iterable[Point]) -> float:
    """Diagonal of the axis-aligned bounding box of ``points``."""

    pts = list(points)
    if not pts:
        return 0.0
    xs = [p.x for p in pts]
    ys = [p.y for p in pts]
    return math.hypot(max(xs) - min(xs), max(ys) - min(ys))


def _is_coord(value: object) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(v, (int, float)) for v in value)
    )


@dataclass
class PolylinesGeometry:
    """One or more polylines.

    Point indexes used by editing operations refer to the flattened order of
    :attr:`points`; splitting a polyline does not renumber its points.
    """

    polylines: List[List[Point]] = field(default_factory=list)

    @classmethod
    def from_coords(cls, coords: Sequence) -> "PolylinesGeometry":
        """Build from ``[[x, y], ...]`` (one polyline) or a list of those."""

        if not coords:
            return cls()
        if _is_coord(coords[0]):
            coords = [coords]
        polylines: List[List[Point]] = []
        for line in coords:
            if not all(_is_coord(item) for item in line):
                raise ValueError(f"polyline entries must be [x, y] pairs, got {line!r}")
            polylines.append([Point(x, y) for x, y in line])
        return cls(polylines)

    def to_coords(self) -> List[List[Coord]]:
        return [[p.as_tuple() for p in line] for line in self.polylines]

    def copy(self) -> "PolylinesGeometry":
        return PolylinesGeometry([list(line) for line in self.polylines])

    @property
    def points(self) -> List[Point]:
        return [p for line in self.polylines for p in line]

    @property
    def point_count(self) -> int:
        return sum(len(line) for line in self.polylines)

    def is_empty(self) -> bool:
        return self.point_count == 0

    def add_point(self, point: Point) -> None:
        if not self.polylines:
            self.polylines.append([])
        self.polylines[-1].append(point)

    def convert_to_line_segments(self, tol: Optional[float] = None) -> List[LineSegment]:
        tol = _tolerance(tol)
        segments: List[LineSegment] = []
        for line in self.polylines:
            for a, b in zip(line, line[1:]):
                segment = LineSegment(a, b)
                if not segment.is_degenerate(tol):
                    segments.append(segment)
        return segments

    def total_length(self) -> float:
        return sum(seg.length for seg in self.convert_to_line_segments())

    def locate(self, index: int) -> Optional[Tuple[int, int]]:
        """Map a flattened point index to ``(polyline, local index)``."""

        if index < 0:
            return None
        offset = 0
        for line_idx, line in enumerate(self.polylines):
            if index < offset + len(line):
                return line_idx, index - offset
            offset += len(line)
        return None

    def delete_segment(self, first: int, second: int) -> bool:
        """Remove the segment between consecutive point indexes.

        The owning polyline is split in two. Returns ``False`` and leaves the
        geometry untouched when the indexes do not name a segment.
        """

        if second != first + 1:
            return False
        loc_a = self.locate(first)
        loc_b = self.locate(second)
        if loc_a is None or loc_b is None or loc_a[0] != loc_b[0]:
            return False
        line_idx, local = loc_a
        line = self.polylines[line_idx]
        self.polylines[line_idx : line_idx + 1] = [line[: local + 1], line[local + 1 :]]
        return True

    def prune(self) -> None:
        """Drop polylines that no longer hold a segment."""

        self.polylines = [line for line in self.polylines if len(line) >= 2]
