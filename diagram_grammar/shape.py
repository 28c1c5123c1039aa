"""Topology-only shapes, canonical point indexing and correspondence search."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .geometry import Point, PolylinesGeometry, _tolerance

logger = logging.getLogger(__name__)

Connection = Tuple[int, int]


def _normalize_connection(connection: Sequence[int]) -> Connection:
    a, b = int(connection[0]), int(connection[1])
    if a == b:
        raise ValueError(f"connection {connection!r} joins point {a} to itself")
    return (a, b) if a < b else (b, a)


@dataclass(frozen=True)
class Shape:
    """Undirected connection graph over point indexes.

    Pairs are stored smaller index first, so ``(i, j)`` and ``(j, i)`` name
    the same connection and equality is a plain set comparison under the
    identity labeling.
    """

    definition: FrozenSet[Connection] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "definition", frozenset(_normalize_connection(c) for c in self.definition)
        )

    def equals(self, other: "Shape") -> bool:
        return self == other

    def __len__(self) -> int:
        return len(self.definition)

    def __contains__(self, connection: object) -> bool:
        if not isinstance(connection, (tuple, list)) or len(connection) != 2:
            return False
        try:
            return _normalize_connection(connection) in self.definition
        except ValueError:
            return False

    def indices(self) -> Tuple[int, ...]:
        return tuple(sorted({i for pair in self.definition for i in pair}))

    def adjacency(self) -> Dict[int, Set[int]]:
        adj: Dict[int, Set[int]] = {}
        for a, b in self.definition:
            adj.setdefault(a, set()).add(b)
            adj.setdefault(b, set()).add(a)
        return adj

    def is_connected(self) -> bool:
        adj = self.adjacency()
        if not adj:
            return False
        start = next(iter(adj))
        seen = {start}
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for nxt in adj[node]:
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        return len(seen) == len(adj)

    def relabel(self, mapping: Mapping[int, int]) -> "Shape":
        return Shape(frozenset((mapping[a], mapping[b]) for a, b in self.definition))


@dataclass(frozen=True)
class LabeledGeometry:
    """A geometry read through a canonical point indexing.

    ``points[i]`` is the coordinate of index ``i``; ``paths`` keeps every
    source polyline as a sequence of indexes. The first ``shared_count``
    indexes come from a seed labeling.
    """

    shape: Shape
    points: Tuple[Point, ...]
    paths: Tuple[Tuple[int, ...], ...]
    shared_count: int = 0

    @classmethod
    def from_geometry(
        cls,
        geometry: PolylinesGeometry,
        *,
        seed: Optional["LabeledGeometry"] = None,
        tol: Optional[float] = None,
    ) -> "LabeledGeometry":
        tol = _tolerance(tol)
        points: List[Point] = list(seed.points) if seed is not None else []
        shared_count = len(points)

        def index_of(point: Point) -> int:
            for idx, existing in enumerate(points):
                if existing.is_close(point, tol):
                    return idx
            points.append(point)
            return len(points) - 1

        paths: List[Tuple[int, ...]] = []
        connections: Set[Connection] = set()
        for line in geometry.polylines:
            compact: List[Point] = []
            for point in line:
                if not compact or not compact[-1].is_close(point, tol):
                    compact.append(point)
            if len(compact) < 2:
                continue
            path = tuple(index_of(p) for p in compact)
            paths.append(path)
            for a, b in zip(path, path[1:]):
                if a != b:
                    connections.add(_normalize_connection((a, b)))

        labeled = cls(Shape(frozenset(connections)), tuple(points), tuple(paths), shared_count)
        logger.debug(
            "Labeled geometry: %d point(s), %d connection(s), %d shared",
            len(points),
            len(connections),
            shared_count,
        )
        return labeled

    @property
    def new_indices(self) -> Tuple[int, ...]:
        return tuple(i for i in self.shape.indices() if i >= self.shared_count)

    def to_geometry(self) -> PolylinesGeometry:
        return PolylinesGeometry([[self.points[i] for i in path] for path in self.paths])


def _search_order(adj: Mapping[int, Set[int]], fixed: Mapping[int, int]) -> List[int]:
    order: List[int] = []
    seen: Set[int] = set(fixed)
    queue: deque = deque(sorted(n for f in fixed for n in adj[f] if n not in seen))
    seen.update(queue)
    remaining = sorted(adj, key=lambda n: (-len(adj[n]), n))
    while True:
        while queue:
            node = queue.popleft()
            order.append(node)
            for nxt in sorted(adj[node]):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append(nxt)
        root = next((n for n in remaining if n not in seen), None)
        if root is None:
            return order
        seen.add(root)
        queue.append(root)


def find_correspondences(
    pattern: Shape,
    target: Shape,
    *,
    fixed: Optional[Mapping[int, int]] = None,
    excluded: Iterable[int] = (),
) -> Iterator[Dict[int, int]]:
    """Yield index bijections mapping the connections of ``pattern`` onto ``target``.

    ``fixed`` pre-assigns pattern indexes; target indexes in ``excluded``
    can only be reached through ``fixed``. The identity mapping comes first
    whenever it is valid.
    """

    if len(pattern) != len(target):
        return
    p_adj = pattern.adjacency()
    t_adj = target.adjacency()
    if len(p_adj) != len(t_adj):
        return
    if sorted(len(v) for v in p_adj.values()) != sorted(len(v) for v in t_adj.values()):
        return

    mapping: Dict[int, int] = dict(fixed or {})
    if len(set(mapping.values())) != len(mapping):
        return
    for p, t in mapping.items():
        if p not in p_adj or t not in t_adj or len(p_adj[p]) != len(t_adj[t]):
            return
        for q in p_adj[p]:
            if q in mapping and mapping[q] not in t_adj[t]:
                return

    used: Set[int] = set(mapping.values())
    blocked: Set[int] = set(excluded) | used
    order = _search_order(p_adj, mapping)
    all_targets = sorted(t_adj)

    def candidates(node: int) -> List[int]:
        anchors = [mapping[q] for q in p_adj[node] if q in mapping]
        pool = sorted(t_adj[anchors[0]]) if anchors else all_targets
        degree = len(p_adj[node])
        result = [
            c
            for c in pool
            if c not in used
            and c not in blocked
            and len(t_adj[c]) == degree
            and all(a in t_adj[c] for a in anchors)
        ]
        if node in result:
            result.remove(node)
            result.insert(0, node)
        return result

    def extend(depth: int) -> Iterator[Dict[int, int]]:
        if depth == len(order):
            yield dict(mapping)
            return
        node = order[depth]
        for cand in candidates(node):
            mapping[node] = cand
            used.add(cand)
            yield from extend(depth + 1)
            used.discard(cand)
            del mapping[node]

    yield from extend(0)
