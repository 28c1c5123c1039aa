"""Grammar rules learned from example geometry pairs."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from itertools import islice
from typing import Dict, Iterator, List, Optional, Tuple

from ..config import EngineConfig, get_engine_config
from ..errors import GeometryParsingFailure, RuleLearningIncompatibility
from ..geometry import Point, PolylinesGeometry
from ..shape import LabeledGeometry, Shape, find_correspondences
from .transform import LearnedExample, RuleTransform, fit_transform, match_orientation

logger = logging.getLogger(__name__)


def _label_left(geometry: PolylinesGeometry, tol: float) -> LabeledGeometry:
    labeled = LabeledGeometry.from_geometry(geometry, tol=tol)
    if len(labeled.shape) == 0:
        raise GeometryParsingFailure("left-hand geometry needs at least one segment")
    if not labeled.shape.is_connected():
        raise GeometryParsingFailure("left-hand geometry must be connected")
    return labeled


def _label_right(geometry: PolylinesGeometry, left: LabeledGeometry, tol: float) -> LabeledGeometry:
    labeled = LabeledGeometry.from_geometry(geometry, seed=left, tol=tol)
    if len(labeled.shape) == 0:
        raise GeometryParsingFailure("right-hand geometry needs at least one segment")
    return labeled


@dataclass
class GrammarRule:
    """Pairing of a left-hand and a right-hand shape plus the learned transform.

    The right-hand labeling reuses the left-hand index of every point the two
    sides share; points that only exist on the right are numbered after them
    and are produced by :attr:`transform` when the rule is applied.
    """

    rule_id: str
    left: LabeledGeometry
    right: LabeledGeometry
    transform: RuleTransform
    examples: List[LearnedExample] = field(default_factory=list)

    @property
    def left_shape(self) -> Shape:
        return self.left.shape

    @property
    def right_shape(self) -> Shape:
        return self.right.shape

    @classmethod
    def from_example(
        cls,
        left_geometry: PolylinesGeometry,
        right_geometry: PolylinesGeometry,
        *,
        rule_id: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ) -> "GrammarRule":
        config = config or get_engine_config()
        left = _label_left(left_geometry, config.point_tolerance)
        right = _label_right(right_geometry, left, config.point_tolerance)
        example = LearnedExample(left.points, tuple(right.points[i] for i in right.new_indices))
        transform = fit_transform([example], ridge=config.ridge)
        rule = cls(rule_id or uuid.uuid4().hex, left, right, transform, [example])
        logger.info(
            "Created rule %s: left %d connection(s), right %d connection(s), %d new point(s)",
            rule.rule_id,
            len(left.shape),
            len(right.shape),
            len(example.right_new),
        )
        return rule

    def _mapped_points(self, labeled: LabeledGeometry, left_map: Dict[int, int]) -> List[Point]:
        return [labeled.points[left_map[k]] for k in range(len(self.left.points))]

    def _candidate_examples(
        self, new_left: LabeledGeometry, new_right: LabeledGeometry, limit: int
    ) -> Iterator[LearnedExample]:
        """Yield the example under every correspondence, at most ``limit`` steps in total.

        Each left-hand mapping and each yielded extension uses up one step.
        Mappings that turn the example into a mirror image of the rule yield
        the conjugated example.
        """

        shared = self.right.shared_count
        right_indices = self.right.shape.indices()
        new_indices = self.right.new_indices
        budget = limit
        for left_map in find_correspondences(self.left_shape, new_left.shape):
            if budget <= 0:
                return
            budget -= 1
            left_points = self._mapped_points(new_left, left_map)
            mirrored, _ = match_orientation(self.left.points, left_points)
            fixed = {k: left_map[k] for k in right_indices if k < shared}
            extensions = find_correspondences(
                self.right_shape,
                new_right.shape,
                fixed=fixed,
                excluded=range(new_right.shared_count),
            )
            for right_map in extensions:
                if budget <= 0:
                    return
                budget -= 1
                example = LearnedExample(
                    tuple(left_points),
                    tuple(new_right.points[right_map[j]] for j in new_indices),
                )
                yield example.mirrored() if mirrored else example

    def learn_from_example(
        self,
        left_geometry: PolylinesGeometry,
        right_geometry: PolylinesGeometry,
        *,
        config: Optional[EngineConfig] = None,
    ) -> float:
        """Generalise the rule with one more example pair.

        Returns the residual of the refitted transform. The rule is left
        unchanged when the example does not fit.
        """

        config = config or get_engine_config()
        new_left = _label_left(left_geometry, config.point_tolerance)
        new_right = _label_right(right_geometry, new_left, config.point_tolerance)

        best: Optional[Tuple[LearnedExample, RuleTransform]] = None
        for example in self._candidate_examples(new_left, new_right, config.max_correspondences):
            transform = fit_transform(self.examples + [example], ridge=config.ridge)
            if best is None or transform.residual < best[1].residual:
                best = (example, transform)

        if best is None:
            raise RuleLearningIncompatibility(
                f"example topology does not match rule {self.rule_id}", self.rule_id
            )
        example, transform = best
        if transform.residual > config.learning_tolerance:
            raise RuleLearningIncompatibility(
                f"example is inconsistent with rule {self.rule_id} "
                f"(residual {transform.residual:.3g} > {config.learning_tolerance:.3g})",
                self.rule_id,
            )

        self.examples.append(example)
        self.transform = transform
        logger.info(
            "Rule %s learned example #%d (residual=%.3e)",
            self.rule_id,
            len(self.examples),
            transform.residual,
        )
        return transform.residual

    def _match_instance(
        self, labeled: LabeledGeometry, limit: int
    ) -> Optional[Tuple[List[Point], bool]]:
        """Pick the correspondence under which ``labeled`` is most similar to the rule.

        Returns the instance points in rule order and whether they are a
        mirror image of the rule's left-hand example. Direct fits win ties,
        then earlier correspondences.
        """

        best: Optional[Tuple[Tuple[float, bool, int], List[Point]]] = None
        candidates = islice(find_correspondences(self.left_shape, labeled.shape), limit)
        for order, left_map in enumerate(candidates):
            points = self._mapped_points(labeled, left_map)
            mirrored, residual = match_orientation(self.left.points, points)
            rank = (round(residual, 9), mirrored, order)
            if best is None or rank < best[0]:
                best = (rank, points)
            if rank[0] == 0.0 and not mirrored:
                break
        if best is None:
            return None
        (residual, mirrored, order), points = best
        logger.debug(
            "Rule %s matched correspondence #%d (mirrored=%s, residual=%.3e)",
            self.rule_id,
            order,
            mirrored,
            residual,
        )
        return points, mirrored

    def apply_to_geometry(
        self, left_geometry: PolylinesGeometry, *, config: Optional[EngineConfig] = None
    ) -> PolylinesGeometry:
        config = config or get_engine_config()
        labeled = _label_left(left_geometry, config.point_tolerance)
        match = self._match_instance(labeled, config.max_correspondences)
        if match is None:
            raise GeometryParsingFailure(
                f"geometry does not match the left-hand shape of rule {self.rule_id}"
            )

        left_points, mirrored = match
        if mirrored:
            flipped = self.transform.evaluate([p.mirrored() for p in left_points], config.point_tolerance)
            new_points = [p.mirrored() for p in flipped]
        else:
            new_points = self.transform.evaluate(left_points, config.point_tolerance)
        coords = dict(enumerate(left_points))
        coords.update(zip(self.right.new_indices, new_points))
        result = PolylinesGeometry([[coords[i] for i in path] for path in self.right.paths])
        logger.debug("Applied rule %s: %d point(s) generated", self.rule_id, len(new_points))
        return result
