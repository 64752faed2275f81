from __future__ import annotations

from datetime import UTC, datetime

import pytest

from domain.errors import (
    InvalidParentError,
    InvalidUpdateError,
    NodeNotFoundError,
    TypeMismatchError,
)
from domain.models import Point, Story
from domain.services.node_actions import (
    create_annotation,
    create_chapter,
    create_event,
    create_picture,
    create_scene,
    create_text,
    delete_node,
    insert_id,
    set_node_positions,
    set_story_title,
    translate_group,
    update_node,
)
from domain.services.story_validation import find_story_issues
from tests.helpers.story_fixtures import sequential_ids


def _chapter_scene_text() -> tuple[Story, str, str, str]:
    ids = sequential_ids()
    story = create_chapter(Story.blank(), "A", id_factory=ids).story
    chapter_id = story.order[0]
    story = create_scene(story, chapter_id, "S1", id_factory=ids).story
    scene_id = story.children_order[chapter_id][0]
    result = create_text(story, scene_id, id_factory=ids)
    return result.story, chapter_id, scene_id, result.node_id or ""


def test_chapter_scene_text_scenario() -> None:
    story, chapter_id, scene_id, text_id = _chapter_scene_text()

    assert (chapter_id, scene_id, text_id) == ("n1", "n2", "n3")
    assert story.order == ["n1"]
    assert story.children_order["n1"] == ["n2"]
    assert story.children_order["n2"] == ["n3"]
    chapter = story.node_map["n1"]
    scene = story.node_map["n2"]
    text = story.node_map["n3"]
    assert chapter.position == Point(100.0, 100.0)
    assert scene.position == Point(100.0, 360.0)
    assert text.position == Point(100.0, 360.0 + 60 + 200)
    assert text.parent_id == "n2"
    assert find_story_issues(story) == []


def test_actions_never_mutate_their_input() -> None:
    story, _, scene_id, _ = _chapter_scene_text()
    snapshot = story.clone()

    create_text(story, scene_id, text="more")
    create_picture(story, scene_id)
    update_node(story, scene_id, {"title": "Renamed"})
    delete_node(story, scene_id)

    assert story == snapshot


def test_text_insert_after_places_and_pushes_following() -> None:
    ids = sequential_ids("x")
    story, _, scene_id, first_id = _chapter_scene_text()
    story = create_text(story, scene_id, text="second", id_factory=ids).story
    second_id = story.children_order[scene_id][-1]
    assert story.node_map[second_id].position.y == 900.0

    result = create_text(story, scene_id, first_id, text="between", id_factory=ids)
    story = result.story

    assert story.children_order[scene_id] == [first_id, result.node_id, second_id]
    assert story.node_map[result.node_id].position.y == 900.0
    assert story.node_map[second_id].position.y == 1200.0


def test_at_start_wins_over_insert_after() -> None:
    story, _, scene_id, first_id = _chapter_scene_text()

    result = create_text(story, scene_id, first_id, at_start=True, id_factory=lambda: "head")

    assert result.story.children_order[scene_id] == ["head", first_id]
    assert result.story.node_map["head"].position.y == 620.0
    assert result.story.node_map[first_id].position.y == 920.0


def test_unknown_insert_after_appends() -> None:
    story, _, scene_id, first_id = _chapter_scene_text()

    result = create_text(story, scene_id, "nope", id_factory=lambda: "tail")

    assert result.story.children_order[scene_id] == [first_id, "tail"]


def test_scene_after_previous_scene_tail() -> None:
    story, chapter_id, scene_id, _ = _chapter_scene_text()

    result = create_scene(story, chapter_id, "S2", id_factory=lambda: "s2")

    assert result.story.children_order[chapter_id] == [scene_id, "s2"]
    assert result.story.node_map["s2"].position == Point(100.0, 620.0 + 80 + 200)


def test_scene_at_start_pushes_existing_scene_down() -> None:
    story, chapter_id, scene_id, text_id = _chapter_scene_text()

    result = create_scene(story, chapter_id, "Prologue", at_start=True, id_factory=lambda: "s0")

    assert result.story.children_order[chapter_id] == ["s0", scene_id]
    assert result.story.node_map["s0"].position == Point(100.0, 360.0)
    assert result.story.node_map[scene_id].position.y == 660.0
    assert result.story.node_map[text_id].position.y == 920.0


def test_chapter_insert_after_shifts_later_chapters_right() -> None:
    ids = sequential_ids("c")
    story = create_chapter(Story.blank(), "One", id_factory=ids).story
    story = create_chapter(story, "Two", id_factory=ids).story
    assert story.node_map["c2"].position == Point(1600.0, 100.0)

    story = create_chapter(story, "One and a half", "c1", id_factory=ids).story

    assert story.order == ["c1", "c3", "c2"]
    assert story.node_map["c3"].position == Point(1600.0, 100.0)
    assert story.node_map["c2"].position == Point(3200.0, 100.0)


def test_media_creation_places_beside_parent() -> None:
    story, chapter_id, scene_id, text_id = _chapter_scene_text()

    story = create_picture(story, text_id, description="Map", id_factory=lambda: "p").story
    story = create_annotation(story, scene_id, text="note", id_factory=lambda: "a").story
    story = create_event(story, chapter_id, title="Founding", year=1801, id_factory=lambda: "e").story

    assert story.children_order[text_id] == ["p"]
    assert story.node_map["p"].position == Point(250.0, 620.0)
    assert story.node_map["a"].position == Point(250.0, 410.0)
    assert story.node_map["e"].position == Point(250.0, 200.0)
    assert story.node_map["e"].year == 1801
    assert find_story_issues(story) == []


def test_event_year_defaults_to_current_year() -> None:
    story, chapter_id, _, _ = _chapter_scene_text()

    result = create_event(story, chapter_id, id_factory=lambda: "e")

    assert result.story.node_map["e"].year == datetime.now(tz=UTC).year


def test_creation_rejects_missing_or_wrong_parent() -> None:
    story, chapter_id, scene_id, _ = _chapter_scene_text()

    with pytest.raises(NodeNotFoundError):
        create_scene(story, "missing")
    with pytest.raises(InvalidParentError):
        create_text(story, chapter_id)
    with pytest.raises(InvalidParentError):
        create_scene(story, scene_id)


def test_invalid_media_fields_raise_update_error() -> None:
    story, chapter_id, _, _ = _chapter_scene_text()

    with pytest.raises(InvalidUpdateError):
        create_event(story, chapter_id, year=2000, month=14)


def test_update_merges_fields() -> None:
    story, _, _, text_id = _chapter_scene_text()

    result = update_node(story, text_id, {"text": "Hello", "tags": ["a", "a", "b"]}, "text")

    node = result.story.node_map[text_id]
    assert node.text == "Hello"
    assert node.tags == ["a", "b"]
    assert node.position == story.node_map[text_id].position


def test_update_ignores_protected_fields() -> None:
    story, _, scene_id, _ = _chapter_scene_text()

    result = update_node(
        story, scene_id, {"title": "Dock", "id": "other", "position": {"x": 0, "y": 0}}
    )

    node = result.story.node_map[scene_id]
    assert node.id == scene_id
    assert node.title == "Dock"
    assert node.position == Point(100.0, 360.0)


def test_update_rejections() -> None:
    story, _, scene_id, text_id = _chapter_scene_text()

    with pytest.raises(TypeMismatchError):
        update_node(story, scene_id, {"text": "x"}, "text")
    with pytest.raises(InvalidUpdateError):
        update_node(story, scene_id, {"colour": "red"})
    with pytest.raises(InvalidUpdateError):
        update_node(story, scene_id, {"parent_id": "n1"})
    with pytest.raises(InvalidUpdateError):
        update_node(story, text_id, {"sticker": {"imageIndex": 0}})
    with pytest.raises(NodeNotFoundError):
        update_node(story, "missing", {"title": "x"})


def test_delete_removes_whole_subtree() -> None:
    story, chapter_id, scene_id, text_id = _chapter_scene_text()
    story = create_picture(story, text_id, id_factory=lambda: "p").story

    result = delete_node(story, scene_id, "scene")

    assert set(result.affected) == {scene_id, text_id, "p"}
    assert result.story.children_order[chapter_id] == []
    assert set(result.story.node_map) == {chapter_id}
    assert find_story_issues(result.story) == []


def test_delete_top_level_chapter_updates_order() -> None:
    story, chapter_id, _, _ = _chapter_scene_text()

    result = delete_node(story, chapter_id)

    assert result.story.order == []
    assert result.story.node_map == {}
    with pytest.raises(TypeMismatchError):
        delete_node(story, chapter_id, "scene")


def test_set_positions_and_translate_group() -> None:
    story, _, scene_id, text_id = _chapter_scene_text()

    positioned = set_node_positions(story, {text_id: Point(5.0, 6.0), "ghost": Point(0.0, 0.0)})
    assert positioned.affected == (text_id,)
    assert positioned.story.node_map[text_id].position == Point(5.0, 6.0)

    dragged = translate_group(story, scene_id, 10.0, -10.0)
    assert dragged.story.node_map[scene_id].position == Point(110.0, 350.0)
    assert dragged.story.node_map[text_id].position == Point(110.0, 610.0)

    with pytest.raises(NodeNotFoundError):
        set_node_positions(story, {"ghost": Point(0.0, 0.0)})


def test_story_title_and_insert_id_helpers() -> None:
    assert set_story_title(Story.blank(), "Renamed").story.title == "Renamed"
    ids = ["a", "b"]
    insert_id(ids, "c", "a")
    insert_id(ids, "d", "zzz")
    insert_id(ids, "e", "a", at_start=True)
    assert ids == ["e", "a", "c", "b", "d"]
