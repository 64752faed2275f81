from __future__ import annotations

import math
from dataclasses import dataclass, field

from domain.models import Point, Story
from domain.ports.metrics import SizeCache

DEFAULT_HEIGHTS: dict[str, float] = {
    "chapter": 120.0,
    "scene": 120.0,
    "text": 160.0,
    "picture": 140.0,
    "annotation": 120.0,
    "event": 120.0,
}

MEDIA_OFFSETS: dict[str, Point] = {
    "picture": Point(150.0, 0.0),
    "annotation": Point(150.0, 50.0),
    "event": Point(150.0, 100.0),
}


@dataclass(frozen=True)
class LayoutConfig:
    buffer_y: float = 200.0
    chapter_x_offset: float = 1500.0
    insert_gap_text_y: float = 300.0
    insert_gap_scene_y: float = 300.0
    insert_gap_chapter_x: float = 1600.0
    fallback_position: Point = Point(100.0, 100.0)
    default_heights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_HEIGHTS))
    media_offsets: dict[str, Point] = field(default_factory=lambda: dict(MEDIA_OFFSETS))

    def default_height(self, node_type: str) -> float:
        return self.default_heights.get(node_type, self.default_heights.get("text", 160.0))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def height_of(
    story: Story,
    node_id: str,
    sizes: SizeCache | None = None,
    config: LayoutConfig | None = None,
) -> float:
    config = config or LayoutConfig()
    node = story.node_map.get(node_id)
    if node is None:
        return config.default_height("text")
    measured = sizes.get_height(node_id) if sizes is not None else None
    if measured is not None:
        return measured
    return config.default_height(node.type)


def deepest_last_id(story: Story, node_id: str) -> str:
    current = node_id
    visited = {current}
    while True:
        children = story.children_order.get(current, [])
        if not children:
            return current
        current = children[-1]
        if current in visited:
            return current
        visited.add(current)


def position_below(
    story: Story,
    anchor_id: str,
    sizes: SizeCache | None = None,
    config: LayoutConfig | None = None,
) -> Point:
    config = config or LayoutConfig()
    anchor = story.node_map.get(anchor_id)
    if anchor is None:
        fallback = config.fallback_position
        return Point(fallback.x, fallback.y + config.buffer_y)
    height = height_of(story, anchor_id, sizes, config)
    return Point(
        anchor.position.x,
        anchor.position.y + round_half_up(height / 2) + config.buffer_y,
    )


def position_for_chapter_after(
    story: Story,
    prev_chapter_id: str,
    config: LayoutConfig | None = None,
) -> Point:
    config = config or LayoutConfig()
    tail = story.node_map.get(deepest_last_id(story, prev_chapter_id))
    base = tail.position if tail is not None else config.fallback_position
    return Point(base.x + config.chapter_x_offset, base.y)


def position_beside(
    story: Story,
    anchor_id: str,
    node_type: str,
    config: LayoutConfig | None = None,
) -> Point:
    config = config or LayoutConfig()
    anchor = story.node_map.get(anchor_id)
    base = anchor.position if anchor is not None else config.fallback_position
    offset = config.media_offsets.get(node_type, Point(150.0, 0.0))
    return base.translated(offset.x, offset.y)
