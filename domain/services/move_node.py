from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from domain.errors import CycleDetectedError, InvalidParentError, InvalidReorderError
from domain.models import Story, is_valid_parent
from domain.services.node_actions import EditResult, insert_id, require_node
from domain.services.story_queries import get_node, is_descendant


@dataclass(frozen=True)
class MoveSpec:
    new_parent_id: str | None
    insert_after_id: str | None = None
    at_start: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "new_parent_id": self.new_parent_id,
            "insert_after_id": self.insert_after_id,
            "at_start": self.at_start,
        }


def check_move(story: Story, node_id: str, new_parent_id: str | None) -> None:
    node = require_node(story, node_id)
    parent_type: str | None = None
    if new_parent_id is not None:
        parent = require_node(story, new_parent_id)
        if parent.id == node.id or is_descendant(story, node.id, parent.id):
            msg = f"Cannot move {node.type} {node.id} under its own descendant {parent.id}"
            raise CycleDetectedError(msg, node.id)
        parent_type = parent.type
    if not is_valid_parent(node.type, parent_type):
        target = parent_type or "top level"
        msg = f"A {node.type} cannot be placed under {target}"
        raise InvalidParentError(msg, node.id)


def move_node(
    story: Story,
    node_id: str,
    new_parent_id: str | None,
    insert_after_id: str | None = None,
    at_start: bool = False,
) -> EditResult:
    check_move(story, node_id, new_parent_id)
    working = story.clone()
    node = working.node_map[node_id]

    old_parent_id = node.parent_id
    if old_parent_id is None:
        working.order = [child_id for child_id in working.order if child_id != node_id]
    for parent_id, child_ids in working.children_order.items():
        if node_id in child_ids:
            working.children_order[parent_id] = [cid for cid in child_ids if cid != node_id]

    node.parent_id = new_parent_id
    if new_parent_id is None:
        insert_id(working.order, node_id, insert_after_id, at_start)
    else:
        siblings = working.children_order.setdefault(new_parent_id, [])
        insert_id(siblings, node_id, insert_after_id, at_start)
    affected = tuple(pid for pid in (old_parent_id, new_parent_id) if pid is not None)
    return EditResult(working, node_id, affected)


def apply_move_spec(story: Story, node_id: str, spec: MoveSpec) -> EditResult:
    return move_node(story, node_id, spec.new_parent_id, spec.insert_after_id, spec.at_start)


def reorder_chapters(story: Story, new_order: Sequence[str]) -> EditResult:
    requested = list(new_order)
    if len(requested) != len(story.order) or sorted(requested) != sorted(story.order):
        msg = "Chapter order must be a permutation of the current top-level chapters"
        raise InvalidReorderError(msg)
    for chapter_id in requested:
        node = get_node(story, chapter_id)
        if node is None or node.type != "chapter" or node.parent_id is not None:
            msg = f"Not a top-level chapter: {chapter_id!r}"
            raise InvalidReorderError(msg, chapter_id)
    working = story.clone()
    working.order = requested
    return EditResult(working, None, tuple(requested))
