import numpy as np
import pytest

from diagram_grammar.errors import (
    GeometryParsingFailure,
    RuleApplicationFailure,
    RuleLearningIncompatibility,
    RuleNotFoundError,
)
from diagram_grammar.geometry import Point, PolylinesGeometry, point_in_polygon
from diagram_grammar.grammar import GrammarRule, RuleStore, RuleTransform
from diagram_grammar.shape import LabeledGeometry, Shape


def geo(coords):
    return PolylinesGeometry.from_coords(coords)


def _xy(point):
    return point.as_tuple()


def assert_points(actual, expected):
    assert len(actual) == len(expected)
    for point, coords in zip(actual, expected):
        assert _xy(point) == pytest.approx(tuple(coords), abs=1e-6)


def _distance_profile(points):
    distinct = []
    for point in points:
        if not any(point.is_close(other) for other in distinct):
            distinct.append(point)
    return sorted(
        a.distance_to(b) for i, a in enumerate(distinct) for b in distinct[i + 1 :]
    )


SEGMENT_LEFT = [[0, 0], [1, 0]]
SEGMENT_RIGHT = [[0, 0], [1, 0], [1, 1]]

SQUARE = [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]
GABLE = [SQUARE, [[0, 1], [0.5, 1.5], [1, 1]]]


def _segment_rule():
    return GrammarRule.from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT), rule_id="corner")


def test_rule_records_shapes_of_example():
    rule = _segment_rule()

    assert rule.rule_id == "corner"
    assert rule.left_shape == Shape({(0, 1)})
    assert rule.right_shape == Shape({(0, 1), (1, 2)})
    assert rule.right.new_indices == (2,)
    assert len(rule.examples) == 1
    assert rule.transform.residual == pytest.approx(0.0, abs=1e-6)


def test_generated_rule_ids_are_unique():
    first = GrammarRule.from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT))
    second = GrammarRule.from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT))

    assert first.rule_id != second.rule_id


def test_apply_reproduces_example():
    rule = _segment_rule()

    result = rule.apply_to_geometry(geo(SEGMENT_LEFT))

    assert len(result.polylines) == 1
    assert_points(result.polylines[0], [(0, 0), (1, 0), (1, 1)])


def test_apply_follows_rotation_and_scale_of_instance():
    rule = _segment_rule()

    result = rule.apply_to_geometry(geo([[3, 3], [3, 5]]))

    line = result.polylines[0]
    assert line[0] == Point(3, 3)
    assert line[1] == Point(3, 5)
    assert _xy(line[2]) == pytest.approx((1, 5), abs=1e-6)


def test_gable_rule_under_similarity_transform():
    rule = GrammarRule.from_example(geo(SQUARE), geo(GABLE))
    # z -> 2i z + (10 + 5i)
    instance = [[10, 5], [10, 7], [8, 7], [8, 5], [10, 5]]

    result = rule.apply_to_geometry(geo(instance))

    assert len(result.polylines) == 2
    assert_points(result.polylines[0], instance)
    roof = result.polylines[1]
    assert _xy(roof[0]) == pytest.approx((8, 5), abs=1e-6)
    assert _xy(roof[1]) == pytest.approx((7, 6), abs=1e-6)
    assert _xy(roof[2]) == pytest.approx((8, 7), abs=1e-6)


TRIANGLE = [[0, 0], [2, 0], [2, 1], [0, 0]]
TRIANGLE_SPUR = [TRIANGLE, [[2, 1], [3, 1]]]


@pytest.mark.parametrize(
    "instance, scale",
    [
        ([[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]], 1.0),
        ([[1, 1], [0, 1], [0, 0], [1, 0], [1, 1]], 1.0),
        ([[0, 0], [-1, 0], [-1, 1], [0, 1], [0, 0]], 1.0),
        ([[10, 5], [8, 5], [8, 7], [10, 7], [10, 5]], 2.0),
    ],
    ids=["reversed", "other-start", "mirrored", "moved-reversed"],
)
def test_gable_output_is_congruent_for_any_traversal(instance, scale):
    rule = GrammarRule.from_example(geo(SQUARE), geo(GABLE))

    result = rule.apply_to_geometry(geo(instance))

    expected = [d * scale for d in _distance_profile(geo(GABLE).points)]
    assert _distance_profile(result.points) == pytest.approx(expected, abs=1e-6)
    corners = [Point(x, y) for x, y in instance[:4]]
    assert not point_in_polygon(result.polylines[1][1], corners)


def test_reversed_square_keeps_roof_in_place():
    rule = GrammarRule.from_example(geo(SQUARE), geo(GABLE))

    result = rule.apply_to_geometry(geo([[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]))

    assert_points(result.polylines[1], [(0, 1), (0.5, 1.5), (1, 1)])


@pytest.mark.parametrize(
    "instance, spur",
    [
        ([[0, 0], [2, 1], [2, 0], [0, 0]], [(2, 1), (3, 1)]),
        ([[0, 0], [2, 0], [2, -1], [0, 0]], [(2, -1), (3, -1)]),
    ],
    ids=["relisted", "mirrored"],
)
def test_asymmetric_rule_follows_instance_orientation(instance, spur):
    rule = GrammarRule.from_example(geo(TRIANGLE), geo(TRIANGLE_SPUR))

    result = rule.apply_to_geometry(geo(instance))

    assert_points(result.polylines[1], spur)


def test_learning_mirrored_example_is_consistent():
    rule = GrammarRule.from_example(geo(SQUARE), geo(GABLE))
    left = [[0, 0], [1, 0], [1, -1], [0, -1], [0, 0]]
    right = [left, [[0, -1], [0.5, -1.5], [1, -1]]]

    residual = rule.learn_from_example(geo(left), geo(right))

    assert residual == pytest.approx(0.0, abs=1e-6)
    assert len(rule.examples) == 2
    result = rule.apply_to_geometry(geo(SQUARE))
    assert_points(result.polylines[1], [(0, 1), (0.5, 1.5), (1, 1)])


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
def test_candidate_search_respects_correspondence_limit(limit):
    rule = GrammarRule.from_example(geo(SQUARE), geo(GABLE))
    new_left = LabeledGeometry.from_geometry(geo(SQUARE))
    new_right = LabeledGeometry.from_geometry(geo(GABLE), seed=new_left)

    assert len(list(rule._candidate_examples(new_left, new_right, 512))) == 2
    assert len(list(rule._candidate_examples(new_left, new_right, limit))) <= limit


def test_learning_consistent_example_keeps_behaviour():
    rule = _segment_rule()

    residual = rule.learn_from_example(geo([[5, 5], [5, 7]]), geo([[5, 5], [5, 7], [3, 7]]))

    assert residual == pytest.approx(0.0, abs=1e-6)
    assert len(rule.examples) == 2
    result = rule.apply_to_geometry(geo([[0, 0], [3, 0]]))
    assert _xy(result.polylines[0][2]) == pytest.approx((3, 3), abs=1e-6)


def test_learning_example_with_other_topology_is_rejected():
    rule = _segment_rule()
    before = rule.transform

    with pytest.raises(RuleLearningIncompatibility) as excinfo:
        rule.learn_from_example(
            geo([[0, 0], [1, 0], [0, 1], [0, 0]]),
            geo([[0, 0], [1, 0], [0, 1], [0, 0]]),
        )

    assert excinfo.value.rule_id == "corner"
    assert rule.transform is before
    assert len(rule.examples) == 1


def test_learning_inconsistent_example_is_rejected_on_residual():
    rule = _segment_rule()

    with pytest.raises(RuleLearningIncompatibility, match="residual"):
        rule.learn_from_example(geo([[0, 0], [2, 0]]), geo([[0, 0], [2, 0], [2, 5]]))

    assert len(rule.examples) == 1
    result = rule.apply_to_geometry(geo(SEGMENT_LEFT))
    assert _xy(result.polylines[0][2]) == pytest.approx((1, 1), abs=1e-6)


@pytest.mark.parametrize(
    "left",
    [
        [[0, 0]],
        [[0, 0], [0, 0]],
        [[[0, 0], [1, 0]], [[5, 5], [6, 5]]],
        [],
    ],
)
def test_unusable_left_geometry_fails_to_parse(left):
    with pytest.raises(GeometryParsingFailure):
        GrammarRule.from_example(geo(left), geo(SEGMENT_RIGHT))


def test_empty_right_geometry_fails_to_parse():
    with pytest.raises(GeometryParsingFailure):
        GrammarRule.from_example(geo(SEGMENT_LEFT), geo([[0, 0]]))


def test_apply_to_non_matching_geometry_fails():
    rule = _segment_rule()

    with pytest.raises(GeometryParsingFailure):
        rule.apply_to_geometry(geo([[0, 0], [1, 0], [2, 0]]))


def test_transform_rejects_wrong_point_count():
    transform = RuleTransform(2, np.array([[-1j, 1 + 1j]]))

    with pytest.raises(RuleApplicationFailure):
        transform.evaluate([Point(0, 0)], 1e-6)


def test_transform_rejects_collapsed_instance():
    transform = RuleTransform(2, np.array([[-1j, 1 + 1j]]))

    with pytest.raises(RuleApplicationFailure):
        transform.evaluate([Point(1, 1), Point(1, 1)], 1e-6)


def test_transform_rejects_non_finite_output():
    transform = RuleTransform(2, np.array([[np.inf, 0.0]]))

    with pytest.raises(RuleApplicationFailure):
        transform.evaluate([Point(1, 1), Point(2, 1)], 1e-6)


def test_store_unknown_rule_raises_key_error():
    store = RuleStore()

    with pytest.raises(KeyError):
        store.get_rule_by_id("missing")
    with pytest.raises(RuleNotFoundError, match="missing"):
        store.apply_rule(geo(SEGMENT_LEFT), "missing")


def test_store_notifies_and_summarizes_rules():
    store = RuleStore()
    seen = []
    store.subscribe(seen.append)

    rule_id = store.create_rule_from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT))
    store.learn_from_example(geo([[5, 5], [5, 7]]), geo([[5, 5], [5, 7], [3, 7]]), rule_id)

    assert seen == [rule_id, rule_id]
    assert rule_id in store
    assert len(store) == 1
    [summary] = store.current_rules_info()
    assert summary.rule_id == rule_id
    assert summary.left_shape == "0-1"
    assert summary.right_shape == "0-1 1-2"
    assert summary.example_count == 2

    store.unsubscribe(seen.append)
    store.create_rule_from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT))
    assert len(seen) == 2


def test_store_rejected_example_does_not_notify():
    store = RuleStore()
    rule_id = store.create_rule_from_example(geo(SEGMENT_LEFT), geo(SEGMENT_RIGHT))
    seen = []
    store.subscribe(seen.append)

    with pytest.raises(RuleLearningIncompatibility):
        store.learn_from_example(geo([[0, 0], [2, 0]]), geo([[0, 0], [2, 0], [2, 5]]), rule_id)

    assert seen == []
    assert store.current_rules_info()[0].example_count == 1
