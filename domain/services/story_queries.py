from __future__ import annotations

from collections.abc import Iterator, Sequence

from domain.models import BaseNode, Story


def get_node(story: Story, node_id: str | None) -> BaseNode | None:
    if not node_id or not isinstance(node_id, str):
        return None
    return story.node_map.get(node_id)


def node_type_of(story: Story, node_id: str | None) -> str | None:
    node = get_node(story, node_id)
    return node.type if node is not None else None


def children_of(story: Story, node_id: str | None) -> list[str]:
    if not node_id or not isinstance(node_id, str):
        return []
    return list(story.children_order.get(node_id, []))


def find_parent_id(story: Story, node_id: str) -> str | None:
    if not node_id or not isinstance(node_id, str):
        return None
    node = get_node(story, node_id)
    if node is not None and node.parent_id and node.parent_id in story.node_map:
        return node.parent_id
    for parent_id, child_ids in story.children_order.items():
        if node_id in child_ids:
            return parent_id
    return None


def find_parent_scene_id(story: Story, node_id: str | None) -> str | None:
    if not node_id:
        return None
    parent_id = find_parent_id(story, node_id)
    if parent_id is not None and node_type_of(story, parent_id) == "scene":
        return parent_id
    return None


def find_chapter_of_scene(story: Story, scene_id: str | None) -> str | None:
    scene = get_node(story, scene_id)
    if scene is None or scene.type != "scene":
        return None
    if scene.parent_id and node_type_of(story, scene.parent_id) == "chapter":
        return scene.parent_id
    for chapter_id in story.order:
        if scene.id in story.children_order.get(chapter_id, []):
            return chapter_id
    return None


def find_parent_chapter_id(story: Story, node_id: str | None) -> str | None:
    node = get_node(story, node_id)
    if node is None or node.type == "chapter":
        return None
    if node.type == "scene":
        return find_chapter_of_scene(story, node.id)
    current: str | None = find_parent_id(story, node.id)
    visited: set[str] = {node.id}
    while current is not None and current not in visited:
        visited.add(current)
        current_type = node_type_of(story, current)
        if current_type == "chapter":
            return current
        if current_type == "scene":
            return find_chapter_of_scene(story, current)
        current = find_parent_id(story, current)
    return None


def last_text_id_in_scene(story: Story, scene_id: str | None) -> str | None:
    for child_id in reversed(children_of(story, scene_id)):
        if node_type_of(story, child_id) == "text":
            return child_id
    return None


def last_scene_id_in_chapter(story: Story, chapter_id: str | None) -> str | None:
    for child_id in reversed(children_of(story, chapter_id)):
        if node_type_of(story, child_id) == "scene":
            return child_id
    return None


def iter_subtree(story: Story, root_id: str) -> Iterator[str]:
    if get_node(story, root_id) is None:
        return
    stack = [root_id]
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current in seen or current not in story.node_map:
            continue
        seen.add(current)
        yield current
        stack.extend(reversed(story.children_order.get(current, [])))


def subtree_ids(story: Story, root_id: str) -> set[str]:
    return set(iter_subtree(story, root_id))


def is_descendant(story: Story, ancestor_id: str, node_id: str) -> bool:
    if not isinstance(node_id, str) or ancestor_id == node_id:
        return False
    return node_id in subtree_ids(story, ancestor_id)


def drag_group(story: Story, node_id: str) -> list[str]:
    group = list(iter_subtree(story, node_id))
    return group or [node_id]


def subsequent_ids(ids: Sequence[str], anchor_id: str) -> list[str]:
    try:
        index = list(ids).index(anchor_id)
    except ValueError:
        return []
    return list(ids[index + 1 :])
