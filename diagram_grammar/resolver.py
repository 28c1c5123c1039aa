"""Resolve wall polylines into a planar arrangement of segments."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .geometry import LineSegment, Point, PointSnapper, PolylinesGeometry, _tolerance
from .logging_utils import debug_log_call

logger = logging.getLogger(__name__)


def _flatten(items: Iterable[object], tol: float) -> List[LineSegment]:
    segments: List[LineSegment] = []
    for item in items:
        if isinstance(item, LineSegment):
            if not item.is_degenerate(tol):
                segments.append(item)
            continue
        geometry = item if isinstance(item, PolylinesGeometry) else getattr(item, "geometry", None)
        if not isinstance(geometry, PolylinesGeometry):
            raise TypeError(f"cannot read segments from {type(item).__name__}")
        segments.extend(geometry.convert_to_line_segments(tol))
    return segments


def _union(a: LineSegment, b: LineSegment) -> LineSegment:
    ends = [a.start, a.end, b.start, b.end]
    params = [a.parameter_of(p) for p in ends]
    lo = min(range(4), key=lambda idx: params[idx])
    hi = max(range(4), key=lambda idx: params[idx])
    return LineSegment(ends[lo], ends[hi])


def _merge_overlaps(segments: Sequence[LineSegment], tol: float) -> List[LineSegment]:
    merged = list(segments)
    i = 0
    while i < len(merged):
        j = i + 1
        while j < len(merged):
            if merged[i].find_intersection(merged[j], tol).kind == "overlap":
                logger.debug("Merging collinear segments %s and %s", merged[i], merged[j])
                merged[i] = _union(merged[i], merged[j])
                del merged[j]
                j = i + 1
                continue
            j += 1
        i += 1
    return merged


def _is_interior(segment: LineSegment, point: Point, tol: float) -> bool:
    return not (segment.start.is_close(point, tol) or segment.end.is_close(point, tol))


def _split_at(segment: LineSegment, cuts: Sequence[Point], tol: float) -> List[LineSegment]:
    ordered = sorted(cuts, key=segment.parameter_of)
    chain: List[Point] = [segment.start]
    for point in ordered:
        if not chain[-1].is_close(point, tol):
            chain.append(point)
    if chain[-1].is_close(segment.end, tol):
        chain[-1] = segment.end
    else:
        chain.append(segment.end)
    return [LineSegment(a, b) for a, b in zip(chain, chain[1:])]


def _split_pass(segments: Sequence[LineSegment], tol: float) -> Tuple[List[LineSegment], bool]:
    cuts: List[List[Point]] = [[] for _ in segments]
    for i in range(len(segments)):
        for j in range(i + 1, len(segments)):
            hit = segments[i].find_intersection(segments[j], tol)
            if hit.kind == "none":
                continue
            for point in hit.points:
                for idx in (i, j):
                    if _is_interior(segments[idx], point, tol):
                        cuts[idx].append(point)

    result: List[LineSegment] = []
    split_any = False
    for segment, points in zip(segments, cuts):
        if not points:
            result.append(segment)
            continue
        pieces = _split_at(segment, points, tol)
        split_any = split_any or len(pieces) > 1
        result.extend(pieces)
    return result, split_any


def _snap_endpoints(segments: Iterable[LineSegment], tol: float) -> List[LineSegment]:
    snapper = PointSnapper(tol)
    return [snapper.snap_segment(segment) for segment in segments]


def _deduplicate(segments: Iterable[LineSegment], tol: float) -> List[LineSegment]:
    seen = set()
    unique: List[LineSegment] = []
    for segment in segments:
        if segment.start == segment.end or segment.is_degenerate(tol):
            continue
        if segment in seen:
            continue
        seen.add(segment)
        unique.append(segment)
    return unique


@debug_log_call(logger)
def resolve(items: Iterable[object], tol: Optional[float] = None) -> List[LineSegment]:
    """Flatten walls into segments that only meet at shared endpoints.

    ``items`` may mix wall entities, :class:`PolylinesGeometry` objects and
    bare :class:`LineSegment` values. Collinear overlapping segments are
    merged into their union, then segments are split at every crossing and
    T-junction until a pass performs no split. Endpoints closer than
    ``tol`` are snapped to one shared :class:`Point` before and after
    splitting, so callers may compare endpoints exactly.
    """

    tol = _tolerance(tol)
    segments = _flatten(items, tol)
    flattened = len(segments)
    segments = [s for s in _snap_endpoints(segments, tol) if s.start != s.end]
    segments = _merge_overlaps(segments, tol)

    passes = 0
    while True:
        passes += 1
        segments, split_any = _split_pass(segments, tol)
        if not split_any:
            break

    resolved = _deduplicate(_snap_endpoints(segments, tol), tol)
    logger.info(
        "Resolved %d wall segment(s) into %d segment(s) in %d pass(es)",
        flattened,
        len(resolved),
        passes,
    )
    return resolved
