"""Non-overlap shifting of the outline after size changes and inserts.

Every function here mutates the ``Story`` it is given. Callers pass a working
copy and publish it afterwards; published stories are never handed in.
"""

from __future__ import annotations

from domain.models import MEDIA_TYPES, Story
from domain.services.positioning import LayoutConfig
from domain.services.story_queries import (
    find_chapter_of_scene,
    find_parent_scene_id,
    iter_subtree,
    node_type_of,
    subsequent_ids,
)


def shift_subtree(story: Story, root_id: str, dx: float = 0.0, dy: float = 0.0) -> list[str]:
    if dx == 0 and dy == 0:
        return []
    moved: list[str] = []
    for node_id in iter_subtree(story, root_id):
        node = story.node_map[node_id]
        node.position = node.position.translated(dx, dy)
        moved.append(node_id)
    return moved


def _later_scenes(story: Story, chapter_id: str, scene_id: str) -> list[str]:
    scene_ids = [
        child_id
        for child_id in story.children_order.get(chapter_id, [])
        if node_type_of(story, child_id) == "scene"
    ]
    return subsequent_ids(scene_ids, scene_id)


def _shift_later_chapters(story: Story, chapter_id: str, dx: float, dy: float) -> list[str]:
    moved: list[str] = []
    for later_id in subsequent_ids(story.order, chapter_id):
        if node_type_of(story, later_id) != "chapter":
            continue
        moved.extend(shift_subtree(story, later_id, dx, dy))
    return moved


def _apply_scene_child_delta(story: Story, origin_id: str, delta_y: float) -> list[str]:
    scene_id = find_parent_scene_id(story, origin_id)
    if scene_id is None:
        return []
    moved: list[str] = []
    for sibling_id in subsequent_ids(story.children_order.get(scene_id, []), origin_id):
        # media siblings only travel inside a shifted text subtree
        if node_type_of(story, sibling_id) != "text":
            continue
        moved.extend(shift_subtree(story, sibling_id, 0.0, delta_y))
    chapter_id = find_chapter_of_scene(story, scene_id)
    if chapter_id is None:
        return moved
    for later_scene_id in _later_scenes(story, chapter_id, scene_id):
        moved.extend(shift_subtree(story, later_scene_id, 0.0, delta_y))
    moved.extend(_shift_later_chapters(story, chapter_id, 0.0, delta_y))
    return moved


def _apply_scene_delta(story: Story, scene_id: str, delta_y: float) -> list[str]:
    moved: list[str] = []
    for child_id in story.children_order.get(scene_id, []):
        moved.extend(shift_subtree(story, child_id, 0.0, delta_y))
    chapter_id = find_chapter_of_scene(story, scene_id)
    if chapter_id is None:
        return moved
    for later_scene_id in _later_scenes(story, chapter_id, scene_id):
        moved.extend(shift_subtree(story, later_scene_id, 0.0, delta_y))
    moved.extend(_shift_later_chapters(story, chapter_id, 0.0, delta_y))
    return moved


def _apply_chapter_delta(story: Story, chapter_id: str, delta_y: float) -> list[str]:
    moved: list[str] = []
    for child_id in story.children_order.get(chapter_id, []):
        moved.extend(shift_subtree(story, child_id, 0.0, delta_y))
    return moved


def apply_height_delta(story: Story, origin_id: str, delta_y: float) -> list[str]:
    """Move everything that visually follows ``origin_id`` by ``delta_y``.

    Returns the ids that were translated, in the order they were visited.
    """
    if delta_y == 0:
        return []
    origin_type = node_type_of(story, origin_id)
    if origin_type is None or origin_type in MEDIA_TYPES:
        return []
    if origin_type == "chapter":
        return _apply_chapter_delta(story, origin_id, delta_y)
    if origin_type == "scene":
        return _apply_scene_delta(story, origin_id, delta_y)
    return _apply_scene_child_delta(story, origin_id, delta_y)


def apply_text_insert_gap(
    story: Story, new_text_id: str, config: LayoutConfig | None = None
) -> list[str]:
    config = config or LayoutConfig()
    return apply_height_delta(story, new_text_id, config.insert_gap_text_y)


def apply_scene_insert_gap(
    story: Story, new_scene_id: str, config: LayoutConfig | None = None
) -> list[str]:
    config = config or LayoutConfig()
    return apply_height_delta(story, new_scene_id, config.insert_gap_scene_y)


def apply_chapter_insert_gap_x(
    story: Story, new_chapter_id: str, config: LayoutConfig | None = None
) -> list[str]:
    config = config or LayoutConfig()
    if new_chapter_id not in story.order:
        return []
    return _shift_later_chapters(story, new_chapter_id, config.insert_gap_chapter_x, 0.0)
