from __future__ import annotations

from domain.models import (
    AnnotationNode,
    BaseNode,
    ChapterNode,
    EventNode,
    PictureNode,
    SceneNode,
    Story,
    TextNode,
)
from domain.services.move_node import MoveSpec
from domain.services.story_queries import get_node, subtree_ids


def compute_targets(story: Story, source_id: str) -> dict[str, MoveSpec]:
    source = get_node(story, source_id)
    if source is None:
        return {}
    excluded = subtree_ids(story, source_id)
    candidates = [node for node in story.node_map.values() if node.id not in excluded]
    targets: dict[str, MoveSpec] = {}

    match source:
        case ChapterNode():
            for node in candidates:
                if node.type == "chapter":
                    targets[node.id] = MoveSpec(new_parent_id=None, insert_after_id=node.id)
        case SceneNode():
            for node in candidates:
                if node.type == "chapter":
                    targets[node.id] = MoveSpec(new_parent_id=node.id, at_start=True)
                elif node.type == "scene" and node.parent_id:
                    targets[node.id] = MoveSpec(new_parent_id=node.parent_id, insert_after_id=node.id)
        case TextNode():
            for node in candidates:
                if node.type == "scene":
                    targets[node.id] = MoveSpec(new_parent_id=node.id, at_start=True)
                elif node.type == "text" and node.parent_id:
                    targets[node.id] = MoveSpec(new_parent_id=node.parent_id, insert_after_id=node.id)
        case PictureNode() | AnnotationNode() | EventNode():
            for node in candidates:
                if node.type in {"chapter", "scene", "text"}:
                    targets[node.id] = MoveSpec(new_parent_id=node.id)

    targets.pop(source_id, None)
    return targets


def node_label(node: BaseNode, width: int = 40) -> str:
    match node:
        case ChapterNode(title=title) | SceneNode(title=title) | EventNode(title=title) if title:
            return title
        case PictureNode(description=description) if description:
            return description
        case TextNode(text=text) | AnnotationNode(text=text) if text.strip():
            first_line = text.strip().splitlines()[0]
            return first_line if len(first_line) <= width else first_line[: width - 3] + "..."
        case _:
            return node.type


def describe_move(story: Story, source_id: str, target_id: str) -> str | None:
    source = get_node(story, source_id)
    target = get_node(story, target_id)
    if source is None or target is None:
        return None
    source_label = node_label(source)
    target_label = node_label(target)
    match source:
        case ChapterNode():
            return f'Insert chapter "{source_label}" after "{target_label}"?'
        case SceneNode() if target.type == "chapter":
            return f'Move scene "{source_label}" to the start of chapter "{target_label}"?'
        case SceneNode():
            return f'Insert scene "{source_label}" after scene "{target_label}"?'
        case TextNode() if target.type == "scene":
            return f'Move text to the start of scene "{target_label}"?'
        case TextNode():
            return f'Insert text after "{target_label}"?'
        case _:
            return f'Change parent of {source.type} to "{target_label}"?'
