import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from diagram_grammar import (
    DiagramModel,
    GeometryParsingFailure,
    Point,
    PolylinesGeometry,
    ProgramRequirement,
    RuleApplicationFailure,
    RuleLearningIncompatibility,
    format_geometry,
    print_model,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parse_requirement(entry: Dict[str, object]) -> ProgramRequirement:
    location = entry.get("location")
    return ProgramRequirement(
        name=str(entry["name"]),
        total_area=float(entry.get("area", 0.0)),  # type: ignore[arg-type]
        location=Point(*location) if location is not None else None,  # type: ignore[misc]
    )


def build_model(scene: Dict[str, object]) -> DiagramModel:
    """Create a model from a scene dictionary and resolve its programs."""

    model = DiagramModel()
    for wall in scene.get("walls", []):  # type: ignore[union-attr]
        thickness = 1.0
        points = wall
        if isinstance(wall, dict):
            thickness = float(wall.get("thickness", 1.0))
            points = wall["points"]
        index = model.create_new_wall_entity(thickness)
        for x, y in points:
            model.add_point_to_wall_entity_at_index(Point(x, y), index)

    requirements = [_parse_requirement(entry) for entry in scene.get("requirements", [])]  # type: ignore[union-attr]
    model.set_program_requirements(requirements)
    model.resolve_programs()
    return model


def run_rules(model: DiagramModel, rules: Sequence[Dict[str, object]]) -> List[str]:
    lines: List[str] = []
    for idx, entry in enumerate(rules):
        examples = list(entry.get("examples", []))  # type: ignore[call-overload]
        if not examples:
            logger.warning("Rule %d has no examples", idx)
            continue
        first = examples[0]
        try:
            rule_id = model.create_new_rule_from_example(
                PolylinesGeometry.from_coords(first["left"]),
                PolylinesGeometry.from_coords(first["right"]),
            )
        except GeometryParsingFailure as exc:
            logger.error("Rule %d could not be created: %s", idx, exc)
            continue

        for ex_idx, example in enumerate(examples[1:], start=1):
            try:
                residual = model.learn_from_example_for_rule(
                    PolylinesGeometry.from_coords(example["left"]),
                    PolylinesGeometry.from_coords(example["right"]),
                    rule_id,
                )
            except RuleLearningIncompatibility as exc:
                logger.warning("Rule %d example %d rejected: %s", idx, ex_idx, exc)
                continue
            logger.info("Rule %d example %d learned (residual=%.3e)", idx, ex_idx, residual)

        lines.append(f"Applications of rule {rule_id}:")
        for app_idx, target in enumerate(entry.get("apply", [])):  # type: ignore[arg-type]
            try:
                result = model.apply_rule_given_left_hand_geometry(
                    PolylinesGeometry.from_coords(target), rule_id
                )
            except (GeometryParsingFailure, RuleApplicationFailure) as exc:
                lines.append(f"  [{app_idx}] failed: {exc}")
                continue
            lines.append(f"  [{app_idx}] {format_geometry(result)}")
    return lines


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Resolve programs and apply grammar rules for a diagram scene")
    parser.add_argument("path", help="Path to the JSON scene file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--output",
        help="Also write the text report to the given path",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    logger.info("Loading scene from %s", args.path)
    with open(args.path, encoding="utf-8") as fin:
        scene = json.load(fin)
    if not isinstance(scene, dict):
        logger.error("Scene file must contain a JSON object")
        raise SystemExit(1)

    model = build_model(scene)
    rule_lines = run_rules(model, scene.get("rules", []))
    report = print_model(model)
    if rule_lines:
        report += "\n".join(rule_lines) + "\n"

    print(report, end="")

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing report to %s", output_path)
        output_path.write_text(report, encoding="utf-8")


if __name__ == "__main__":
    main(sys.argv[1:])
