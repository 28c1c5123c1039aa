from diagram_grammar.geometry import Point, PolylinesGeometry
from diagram_grammar.model import DiagramModel
from diagram_grammar.printer import (
    format_geometry,
    format_point,
    format_program,
    format_shape,
    print_model,
)
from diagram_grammar.programs import EnclosedProgram
from diagram_grammar.shape import Shape


def test_format_point_trims_trailing_zeros():
    assert format_point(Point(1.0, 2.5)) == "(1, 2.5)"
    assert format_point(Point(1 / 3, -4)) == "(0.333333, -4)"


def test_format_shape_sorts_connections():
    assert format_shape(Shape({(2, 1), (0, 1)})) == "0-1 1-2"
    assert format_shape(Shape()) == "(empty)"


def test_format_geometry_joins_polylines():
    geometry = PolylinesGeometry.from_coords([[[0, 0], [1, 0]], [[2, 2], [3, 3]]])

    assert format_geometry(geometry) == "(0, 0) -> (1, 0); (2, 2) -> (3, 3)"
    assert format_geometry(PolylinesGeometry()) == "(empty)"


def test_format_program_marks_unmatched_and_holes():
    program = EnclosedProgram(
        boundary=(Point(0, 0), Point(2, 0), Point(2, 2), Point(0, 2)),
        area=3.0,
        perimeter=12.0,
        holes=((Point(1, 1), Point(1, 1.5), Point(1.5, 1.5), Point(1.5, 1)),),
    )

    text = format_program(program)

    assert text.startswith("(unmatched): area=3 perimeter=12 holes=1 boundary=(0, 0) (2, 0)")


def test_print_model_lists_every_section():
    model = DiagramModel()
    index = model.create_new_wall_entity(0.25)
    for point in [(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)]:
        model.add_point_to_wall_entity_at_index(point, index)
    model.resolve_programs()

    lines = print_model(model).splitlines()

    assert lines[0] == "Walls (1):"
    assert lines[1].startswith("  [0] thickness=0.25 (0, 0) -> (1, 0)")
    assert lines[2] == "Resolved segments: 4"
    assert lines[3] == "Programs (1):"
    assert lines[4].startswith("  - (unmatched): area=1 perimeter=4")
    assert lines[5] == "Total enclosed area: 1"
    assert lines[6] == "Total perimeter length: 4"
    assert lines[7] == "Rules (0):"
