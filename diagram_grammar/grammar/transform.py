"""Transforms mapping left-hand points to the new points of a right-hand shape.

Every new point is an affine combination of the left-hand points with
complex weights, ``R_j = sum_k c_jk L_k`` with ``sum_k c_jk = 1``. Reading
coordinates as complex numbers makes the combination commute with
translation, rotation and uniform scaling of the left-hand points, so one
example is enough to reproduce a rule on any similar instance; further
examples refine the weights in the least-squares sense. The combination
is not equivariant under reflection, so an instance that is a mirror image
of the rule is conjugated before evaluation and the result conjugated back.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
from scipy import linalg

from ..errors import RuleApplicationFailure
from ..geometry import Point, extent

logger = logging.getLogger(__name__)

_ORIENTATION_EPS = 1e-9


@dataclass(frozen=True)
class LearnedExample:
    """One example pair expressed in rule indexing."""

    left: Tuple[Point, ...]
    right_new: Tuple[Point, ...]

    def mirrored(self) -> "LearnedExample":
        return LearnedExample(
            tuple(p.mirrored() for p in self.left), tuple(p.mirrored() for p in self.right_new)
        )


@dataclass
class RuleTransform:
    left_count: int
    weights: np.ndarray
    residual: float = 0.0

    @property
    def new_count(self) -> int:
        return int(self.weights.shape[0])

    def evaluate(self, left_points: Sequence[Point], tol: float) -> List[Point]:
        if len(left_points) != self.left_count:
            raise RuleApplicationFailure(
                f"transform expects {self.left_count} left-hand point(s), got {len(left_points)}"
            )
        if extent(left_points) <= tol:
            raise RuleApplicationFailure("left-hand points collapse to a single location")
        if self.new_count == 0:
            return []
        z = np.array([p.as_complex() for p in left_points], dtype=complex)
        out = self.weights @ z
        if not np.all(np.isfinite(out)):
            raise RuleApplicationFailure("transform produced non-finite coordinates")
        return [Point.from_complex(complex(value)) for value in out]


def _normalized(example: LearnedExample) -> Tuple[np.ndarray, np.ndarray, float]:
    z = np.array([p.as_complex() for p in example.left], dtype=complex)
    scale = extent(example.left)
    if scale <= 0.0:
        raise ValueError("example left-hand points have zero extent")
    origin = z[0]
    rel_left = (z[1:] - origin) / scale
    rel_right = (np.array([p.as_complex() for p in example.right_new], dtype=complex) - origin) / scale
    return rel_left, rel_right, scale


def fit_transform(examples: Sequence[LearnedExample], *, ridge: float) -> RuleTransform:
    """Least-squares fit of the combination weights over ``examples``.

    Each example is expressed relative to its first left-hand point and its
    extent; the ridge term pins down the weights when the examples leave
    them underdetermined.
    """

    if not examples:
        raise ValueError("fit_transform requires at least one example")
    left_count = len(examples[0].left)
    new_count = len(examples[0].right_new)
    if left_count < 2:
        raise ValueError("a transform needs at least two left-hand points")
    if new_count == 0:
        return RuleTransform(left_count, np.zeros((0, left_count), dtype=complex), 0.0)

    rows_a: List[np.ndarray] = []
    rows_b: List[np.ndarray] = []
    for example in examples:
        rel_left, rel_right, _ = _normalized(example)
        rows_a.append(rel_left)
        rows_b.append(rel_right)
    a = np.vstack(rows_a)
    b = np.vstack(rows_b)
    if ridge > 0.0:
        damping = np.sqrt(ridge)
        a = np.vstack([a, damping * np.eye(left_count - 1, dtype=complex)])
        b = np.vstack([b, np.zeros((left_count - 1, new_count), dtype=complex)])

    solution, _, rank, _ = linalg.lstsq(a, b)
    weights = np.zeros((new_count, left_count), dtype=complex)
    weights[:, 1:] = solution.T
    weights[:, 0] = 1.0 - solution.sum(axis=0)

    residual = 0.0
    for example in examples:
        z = np.array([p.as_complex() for p in example.left], dtype=complex)
        target = np.array([p.as_complex() for p in example.right_new], dtype=complex)
        err = np.abs(weights @ z - target).max() / extent(example.left)
        residual = max(residual, float(err))

    logger.debug(
        "Fitted transform over %d example(s): %d left, %d new, rank=%d, residual=%.3e",
        len(examples),
        left_count,
        new_count,
        rank,
        residual,
    )
    return RuleTransform(left_count, weights, residual)


def fit_similarity(
    source: Sequence[Point], target: Sequence[Point], *, mirror: bool = False
) -> Tuple[complex, complex, float]:
    """Least-squares fit of ``target ~ a * source + b`` in complex coordinates.

    With ``mirror`` the source is conjugated first, so the fit describes an
    orientation-reversing similarity. The residual is the largest point
    error relative to the extent of ``target``.
    """

    src = np.array([p.as_complex() for p in source], dtype=complex)
    dst = np.array([p.as_complex() for p in target], dtype=complex)
    if mirror:
        src = np.conj(src)
    design = np.column_stack([src, np.ones_like(src)])
    solution, _, _, _ = linalg.lstsq(design, dst)
    scale = extent(target)
    if scale <= 0.0:
        return complex(solution[0]), complex(solution[1]), math.inf
    err = np.abs(design @ solution - dst).max()
    return complex(solution[0]), complex(solution[1]), float(err) / scale


def match_orientation(source: Sequence[Point], target: Sequence[Point]) -> Tuple[bool, float]:
    """Return ``(mirrored, residual)`` for the better of the direct and mirrored fits.

    Ties go to the direct fit.
    """

    _, _, direct = fit_similarity(source, target)
    _, _, reflected = fit_similarity(source, target, mirror=True)
    if reflected < direct - _ORIENTATION_EPS:
        return True, reflected
    return False, direct
