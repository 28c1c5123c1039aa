from __future__ import annotations

from typing import TYPE_CHECKING, List

from .geometry import Point, PolylinesGeometry
from .programs import EnclosedProgram
from .shape import Shape

if TYPE_CHECKING:  # pragma: no cover - imports for annotations only
    from .grammar.store import RuleSummary
    from .model import DiagramModel


def _fmt_num(value: float) -> str:
    return f"{value:.6g}"


def format_point(point: Point) -> str:
    return f"({_fmt_num(point.x)}, {_fmt_num(point.y)})"


def format_shape(shape: Shape) -> str:
    if not shape.definition:
        return "(empty)"
    return " ".join(f"{a}-{b}" for a, b in sorted(shape.definition))


def format_geometry(geometry: PolylinesGeometry) -> str:
    if geometry.is_empty():
        return "(empty)"
    return "; ".join(" -> ".join(format_point(p) for p in line) for line in geometry.polylines)


def format_program(program: EnclosedProgram) -> str:
    label = program.name if program.name is not None else "(unmatched)"
    parts = [f"{label}: area={_fmt_num(program.area)} perimeter={_fmt_num(program.perimeter)}"]
    if program.holes:
        parts.append(f"holes={len(program.holes)}")
    parts.append("boundary=" + " ".join(format_point(p) for p in program.boundary))
    return " ".join(parts)


def format_rule_summary(summary: "RuleSummary") -> str:
    return (
        f"rule {summary.rule_id}: {summary.left_shape} => {summary.right_shape}"
        f" [examples={summary.example_count} residual={summary.residual:.3g}]"
    )


def print_model(model: "DiagramModel") -> str:
    """Render the current walls, programs and rules of ``model`` as text."""

    lines: List[str] = []
    lines.append(f"Walls ({len(model.wall_entities)}):")
    for idx, wall in enumerate(model.wall_entities):
        lines.append(f"  [{idx}] thickness={_fmt_num(wall.thickness)} {format_geometry(wall.geometry)}")
    lines.append(f"Resolved segments: {len(model.resolved_segments)}")
    lines.append(f"Programs ({len(model.programs)}):")
    for program in model.programs:
        lines.append(f"  - {format_program(program)}")
    lines.append(f"Total enclosed area: {_fmt_num(model.total_enclosed_area())}")
    lines.append(f"Total perimeter length: {_fmt_num(model.total_perimeter_length())}")
    rules = model.current_rules_info()
    lines.append(f"Rules ({len(rules)}):")
    for summary in rules:
        lines.append(f"  - {format_rule_summary(summary)}")
    return "\n".join(lines) + "\n"
