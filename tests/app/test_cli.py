from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from click.testing import Result
from typer.testing import CliRunner

from app.cli import app
from domain.models import Story

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "story_canvas.yaml"
    path.write_text("engine:\n  log_level: error\n", encoding="utf-8")
    return path


@pytest.fixture
def story_path(tmp_path: Path) -> Path:
    return tmp_path / "story.json"


def _invoke(config_path: Path, story_path: Path, *args: str) -> Result:
    return runner.invoke(
        app, ["--config", str(config_path), "--story", str(story_path), *args]
    )


def _load(story_path: Path) -> Story:
    return Story.from_dict(orjson.loads(story_path.read_bytes()))


def test_build_outline_from_command_line(config_path: Path, story_path: Path) -> None:
    result = _invoke(config_path, story_path, "new", "--title", "Harbour")
    assert result.exit_code == 0, result.output

    assert _invoke(config_path, story_path, "add-chapter", "Arrival").exit_code == 0
    chapter_id = _load(story_path).order[0]
    assert _invoke(config_path, story_path, "add-scene", chapter_id, "Dock").exit_code == 0
    scene_id = _load(story_path).children_order[chapter_id][0]
    result = _invoke(
        config_path, story_path, "add-text", scene_id, "The ferry was late.", "--tag", "port"
    )
    assert result.exit_code == 0, result.output

    story = _load(story_path)
    assert story.title == "Harbour"
    text_id = story.children_order[scene_id][0]
    text = story.node_map[text_id]
    assert text.tags == ["port"]
    assert text.position.y == story.node_map[scene_id].position.y + 60 + 200

    shown = _invoke(config_path, story_path, "show")
    assert shown.exit_code == 0
    assert "Arrival" in shown.output
    assert _invoke(config_path, story_path, "validate").exit_code == 0


def test_new_refuses_to_overwrite(config_path: Path, story_path: Path) -> None:
    assert _invoke(config_path, story_path, "new").exit_code == 0
    assert _invoke(config_path, story_path, "new").exit_code == 1
    assert _invoke(config_path, story_path, "new", "--force", "--title", "B").exit_code == 0
    assert _load(story_path).title == "B"


def test_media_move_and_delete(config_path: Path, story_path: Path) -> None:
    _invoke(config_path, story_path, "add-chapter", "One")
    _invoke(config_path, story_path, "add-chapter", "Two")
    first, second = _load(story_path).order
    _invoke(config_path, story_path, "add-scene", first, "Scene")
    scene_id = _load(story_path).children_order[first][0]

    result = _invoke(config_path, story_path, "add-media", "event", first, "--year", "1901")
    assert result.exit_code == 0, result.output
    result = _invoke(config_path, story_path, "add-media", "video", first)
    assert result.exit_code == 1

    result = _invoke(config_path, story_path, "move", scene_id, "--parent", second, "--at-start")
    assert result.exit_code == 0, result.output
    story = _load(story_path)
    assert story.children_order[second] == [scene_id]
    assert story.node_map[scene_id].parent_id == second

    targets = _invoke(config_path, story_path, "targets", scene_id)
    assert targets.exit_code == 0
    assert "No valid targets" not in targets.output

    assert _invoke(config_path, story_path, "delete", second).exit_code == 0
    assert set(_load(story_path).order) == {first}


def test_failed_actions_exit_with_error(config_path: Path, story_path: Path) -> None:
    _invoke(config_path, story_path, "add-chapter", "One")
    chapter_id = _load(story_path).order[0]

    result = _invoke(config_path, story_path, "add-text", chapter_id, "misplaced")
    assert result.exit_code == 1
    assert "Failed" in result.output

    assert _invoke(config_path, story_path, "reorder", "ghost").exit_code == 1
    assert _invoke(config_path, story_path, "delete", "ghost").exit_code == 1
    assert _load(story_path).order == [chapter_id]


def test_validate_reports_broken_story(config_path: Path, story_path: Path) -> None:
    payload = {
        "title": "Broken",
        "order": ["c"],
        "nodeMap": {"c": {"id": "c", "type": "chapter"}},
        "childrenOrder": {"c": ["ghost"]},
    }
    story_path.write_bytes(orjson.dumps(payload))

    result = _invoke(config_path, story_path, "validate")

    assert result.exit_code == 1
    assert "dangling_id" in result.output


def _write_misplaced_text(story_path: Path) -> bytes:
    payload = {
        "title": "Misplaced",
        "order": ["c1"],
        "nodeMap": {
            "c1": {"id": "c1", "type": "chapter"},
            "t1": {"id": "t1", "type": "text", "parentId": "c1"},
        },
        "childrenOrder": {"c1": ["t1"], "t1": []},
    }
    raw = orjson.dumps(payload)
    story_path.write_bytes(raw)
    return raw


def test_mutations_refuse_invalid_story_file(config_path: Path, story_path: Path) -> None:
    raw = _write_misplaced_text(story_path)

    result = _invoke(config_path, story_path, "add-chapter", "B")

    assert result.exit_code == 1
    assert story_path.read_bytes() == raw


def test_show_survives_cyclic_child_lists(config_path: Path, story_path: Path) -> None:
    payload = {
        "title": "Loop",
        "order": ["c1"],
        "nodeMap": {
            "c1": {"id": "c1", "type": "chapter", "title": "Ring"},
            "s1": {"id": "s1", "type": "scene", "parentId": "c1"},
        },
        "childrenOrder": {"c1": ["s1"], "s1": ["c1"]},
    }
    story_path.write_bytes(orjson.dumps(payload))

    result = _invoke(config_path, story_path, "show")

    assert result.exit_code == 0, result.output
    assert "Ring" in result.output
