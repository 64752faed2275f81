from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from domain.errors import (
    InvalidParentError,
    InvalidUpdateError,
    NodeNotFoundError,
    TypeMismatchError,
)
from domain.models import (
    NODE_CLASSES,
    BaseNode,
    ChapterNode,
    Point,
    SceneNode,
    Story,
    is_valid_parent,
)
from domain.ports.metrics import SizeCache
from domain.services.layout_shifts import (
    apply_chapter_insert_gap_x,
    apply_scene_insert_gap,
    apply_text_insert_gap,
)
from domain.services.positioning import (
    LayoutConfig,
    position_below,
    position_beside,
    position_for_chapter_after,
)
from domain.services.story_queries import (
    drag_group,
    get_node,
    last_scene_id_in_chapter,
    last_text_id_in_scene,
    node_type_of,
)

IdFactory = Callable[[], str]

PROTECTED_FIELDS = frozenset({"id", "type", "parent_id", "parentId", "position"})


def new_node_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class EditResult:
    story: Story
    node_id: str | None = None
    affected: tuple[str, ...] = ()


def insert_id(
    ids: list[str],
    new_id: str,
    insert_after_id: str | None = None,
    at_start: bool = False,
) -> None:
    if at_start:
        ids.insert(0, new_id)
        return
    if insert_after_id and insert_after_id in ids:
        ids.insert(ids.index(insert_after_id) + 1, new_id)
        return
    ids.append(new_id)


def require_node(story: Story, node_id: str | None, expected_type: str | None = None) -> BaseNode:
    node = get_node(story, node_id)
    if node is None:
        msg = f"Node not found: {node_id!r}"
        raise NodeNotFoundError(msg, node_id)
    if expected_type is not None and node.type != expected_type:
        msg = f"Node {node_id} is a {node.type}, expected {expected_type}"
        raise TypeMismatchError(msg, node_id)
    return node


def require_parent(story: Story, parent_id: str | None, child_type: str) -> BaseNode:
    parent = get_node(story, parent_id)
    if parent is None:
        msg = f"Parent not found for new {child_type}: {parent_id!r}"
        raise NodeNotFoundError(msg, parent_id)
    if not is_valid_parent(child_type, parent.type):
        msg = f"A {child_type} cannot be placed under a {parent.type} ({parent.id})"
        raise InvalidParentError(msg, parent.id)
    return parent


def _build_node(node_type: str, payload: dict[str, Any]) -> BaseNode:
    model = NODE_CLASSES[node_type]
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        msg = f"Invalid {node_type} fields: {exc.errors(include_url=False)}"
        raise InvalidUpdateError(msg, payload.get("id")) from exc


def _attach(
    story: Story,
    node: BaseNode,
    insert_after_id: str | None,
    at_start: bool,
) -> None:
    story.node_map[node.id] = node
    story.children_order[node.id] = []
    if node.parent_id is None:
        insert_id(story.order, node.id, insert_after_id, at_start)
        return
    siblings = story.children_order.setdefault(node.parent_id, [])
    insert_id(siblings, node.id, insert_after_id, at_start)


def create_chapter(
    story: Story,
    title: str = "New Chapter",
    insert_after_id: str | None = None,
    *,
    description: str | None = None,
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    config = config or LayoutConfig()
    working = story.clone()
    previous_id = insert_after_id if insert_after_id in working.order else None
    if previous_id is None and working.order:
        previous_id = working.order[-1]
    if previous_id is not None:
        position = position_for_chapter_after(working, previous_id, config)
    else:
        position = config.fallback_position

    chapter = ChapterNode(
        id=id_factory(),
        parent_id=None,
        position=position,
        title=title,
        description=description,
    )
    _attach(working, chapter, insert_after_id, at_start=False)
    moved = apply_chapter_insert_gap_x(working, chapter.id, config)
    return EditResult(working, chapter.id, tuple(moved))


def create_scene(
    story: Story,
    chapter_id: str,
    title: str = "New Scene",
    insert_after_id: str | None = None,
    at_start: bool = False,
    *,
    description: str | None = None,
    sizes: SizeCache | None = None,
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    config = config or LayoutConfig()
    chapter = require_parent(story, chapter_id, "scene")
    working = story.clone()
    siblings = working.children_order.get(chapter.id, [])

    previous_scene_id: str | None = None
    if not at_start:
        if insert_after_id in siblings and node_type_of(working, insert_after_id) == "scene":
            previous_scene_id = insert_after_id
        else:
            previous_scene_id = last_scene_id_in_chapter(working, chapter.id)

    if previous_scene_id is not None:
        previous_scene = working.node_map[previous_scene_id]
        anchor_id = last_text_id_in_scene(working, previous_scene_id) or previous_scene_id
        below = position_below(working, anchor_id, sizes, config)
        position = Point(previous_scene.position.x, below.y)
    else:
        position = position_below(working, chapter.id, sizes, config)

    scene = SceneNode(
        id=id_factory(),
        parent_id=chapter.id,
        position=position,
        title=title,
        description=description,
    )
    _attach(working, scene, insert_after_id, at_start)
    moved = apply_scene_insert_gap(working, scene.id, config)
    return EditResult(working, scene.id, tuple(moved))


def create_text(
    story: Story,
    scene_id: str,
    insert_after_id: str | None = None,
    at_start: bool = False,
    *,
    text: str = "",
    summary: str | None = None,
    tags: Iterable[str] = (),
    sticker: Mapping[str, Any] | None = None,
    sizes: SizeCache | None = None,
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    config = config or LayoutConfig()
    scene = require_parent(story, scene_id, "text")
    working = story.clone()
    siblings = working.children_order.get(scene.id, [])

    if at_start:
        anchor_id = scene.id
    elif insert_after_id in siblings and node_type_of(working, insert_after_id) == "text":
        anchor_id = insert_after_id
    else:
        anchor_id = last_text_id_in_scene(working, scene.id) or scene.id
    below = position_below(working, anchor_id, sizes, config)

    node = _build_node(
        "text",
        {
            "id": id_factory(),
            "parent_id": scene.id,
            "position": Point(scene.position.x, below.y),
            "text": text,
            "summary": summary,
            "tags": list(tags),
            "sticker": dict(sticker) if sticker is not None else None,
        },
    )
    _attach(working, node, insert_after_id, at_start)
    moved = apply_text_insert_gap(working, node.id, config)
    return EditResult(working, node.id, tuple(moved))


def create_media(
    story: Story,
    node_type: str,
    parent_id: str,
    insert_after_id: str | None = None,
    *,
    fields: Mapping[str, Any] | None = None,
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    config = config or LayoutConfig()
    parent = require_parent(story, parent_id, node_type)
    working = story.clone()
    payload: dict[str, Any] = {
        key: value for key, value in (fields or {}).items() if key not in PROTECTED_FIELDS
    }
    if node_type == "event" and payload.get("year") is None:
        payload["year"] = datetime.now(tz=UTC).year
    payload.update(
        id=id_factory(),
        parent_id=parent.id,
        position=position_beside(working, parent.id, node_type, config),
    )
    node = _build_node(node_type, payload)
    _attach(working, node, insert_after_id, at_start=False)
    return EditResult(working, node.id)


def create_picture(
    story: Story,
    parent_id: str,
    insert_after_id: str | None = None,
    *,
    description: str = "",
    url: str | None = None,
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    return create_media(
        story,
        "picture",
        parent_id,
        insert_after_id,
        fields={"description": description, "url": url},
        config=config,
        id_factory=id_factory,
    )


def create_annotation(
    story: Story,
    parent_id: str,
    insert_after_id: str | None = None,
    *,
    text: str = "",
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    return create_media(
        story,
        "annotation",
        parent_id,
        insert_after_id,
        fields={"text": text},
        config=config,
        id_factory=id_factory,
    )


def create_event(
    story: Story,
    parent_id: str,
    insert_after_id: str | None = None,
    *,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    title: str = "",
    description: str | None = None,
    tags: Iterable[str] = (),
    config: LayoutConfig | None = None,
    id_factory: IdFactory = new_node_id,
) -> EditResult:
    return create_media(
        story,
        "event",
        parent_id,
        insert_after_id,
        fields={
            "year": year,
            "month": month,
            "day": day,
            "title": title,
            "description": description,
            "tags": list(tags),
        },
        config=config,
        id_factory=id_factory,
    )


def update_node(
    story: Story,
    node_id: str,
    fields: Mapping[str, Any],
    expected_type: str | None = None,
) -> EditResult:
    node = require_node(story, node_id, expected_type)
    model = type(node)
    known = set(model.model_fields)
    updates = {key: value for key, value in fields.items() if key not in PROTECTED_FIELDS}
    unknown = sorted(key for key in updates if key not in known)
    if unknown:
        msg = f"Unknown {node.type} fields: {', '.join(unknown)}"
        raise InvalidUpdateError(msg, node_id)
    if not updates:
        msg = f"No updatable fields given for {node.type} {node_id}"
        raise InvalidUpdateError(msg, node_id)

    payload = node.model_dump()
    payload.update(updates)
    updated = _build_node(node.type, payload)
    working = story.clone()
    working.node_map[node_id] = updated
    return EditResult(working, node_id)


def _delete_recursively(story: Story, node_id: str, removed: list[str]) -> None:
    for child_id in story.children_order.get(node_id, []):
        _delete_recursively(story, child_id, removed)
    if story.node_map.pop(node_id, None) is not None:
        removed.append(node_id)
    story.children_order.pop(node_id, None)


def delete_node(story: Story, node_id: str, expected_type: str | None = None) -> EditResult:
    node = require_node(story, node_id, expected_type)
    working = story.clone()
    if node.parent_id is None:
        working.order = [child_id for child_id in working.order if child_id != node_id]
    for parent_id, child_ids in working.children_order.items():
        if node_id in child_ids:
            working.children_order[parent_id] = [cid for cid in child_ids if cid != node_id]
    removed: list[str] = []
    _delete_recursively(working, node_id, removed)
    return EditResult(working, node_id, tuple(removed))


def set_node_positions(story: Story, positions: Mapping[str, Point]) -> EditResult:
    known = [node_id for node_id in positions if node_id in story.node_map]
    if not known:
        msg = f"None of the nodes to position exist: {sorted(positions)}"
        raise NodeNotFoundError(msg)
    working = story.clone()
    for node_id in known:
        target = positions[node_id]
        working.node_map[node_id].position = Point(float(target.x), float(target.y))
    return EditResult(working, known[0], tuple(known))


def translate_group(story: Story, node_id: str, dx: float, dy: float) -> EditResult:
    require_node(story, node_id)
    working = story.clone()
    group = drag_group(working, node_id)
    for member_id in group:
        member = working.node_map[member_id]
        member.position = member.position.translated(dx, dy)
    return EditResult(working, node_id, tuple(group))


def set_story_title(story: Story, title: str) -> EditResult:
    working = story.clone()
    working.title = title
    return EditResult(working)
