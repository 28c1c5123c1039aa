import json

import pytest

import diagram_grammar.__main__ as cli


def _write_scene(tmp_path, scene):
    path = tmp_path / "scene.json"
    path.write_text(json.dumps(scene), encoding="utf-8")
    return path


SCENE = {
    "walls": [
        {"thickness": 0.2, "points": [[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]},
    ],
    "requirements": [{"name": "Studio", "area": 1.1}],
    "rules": [
        {
            "examples": [
                {"left": [[0, 0], [1, 0]], "right": [[0, 0], [1, 0], [1, 1]]},
                {"left": [[0, 0], [2, 0]], "right": [[0, 0], [2, 0], [2, 5]]},
            ],
            "apply": [[[3, 3], [3, 5]], [[0, 0], [1, 0], [2, 0]]],
        }
    ],
}


def test_main_prints_report(tmp_path, capsys):
    scene_path = _write_scene(tmp_path, SCENE)

    cli.main([str(scene_path), "--log-level", "WARNING"])

    out = capsys.readouterr().out
    assert "Walls (1):" in out
    assert "Resolved segments: 4" in out
    assert "Programs (1):" in out
    assert "  - Studio: area=1 perimeter=4" in out
    assert "Total enclosed area: 1" in out
    assert "Total perimeter length: 4" in out
    assert "Rules (1):" in out
    assert "[examples=1" in out
    assert "  [0] (3, 3) -> (3, 5) -> (1, 5)" in out
    assert "  [1] failed:" in out


def test_main_writes_output_file(tmp_path, capsys):
    scene_path = _write_scene(tmp_path, {"walls": [[[0, 0], [2, 0]]]})
    output_path = tmp_path / "out" / "report.txt"

    cli.main([str(scene_path), "--output", str(output_path)])

    printed = capsys.readouterr().out
    assert output_path.read_text(encoding="utf-8") == printed
    assert "Programs (0):" in printed
    assert "Rules (0):" in printed
    assert "Applications of rule" not in printed


def test_main_rejects_non_object_scene(tmp_path):
    scene_path = _write_scene(tmp_path, [1, 2, 3])

    with pytest.raises(SystemExit):
        cli.main([str(scene_path)])


def test_run_rules_skips_rule_without_examples():
    model = cli.build_model({})

    assert cli.run_rules(model, [{"apply": [[[0, 0], [1, 0]]]}]) == []
    assert model.current_rules_info() == []
