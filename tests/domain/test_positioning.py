from __future__ import annotations

import pytest

from adapters.metrics.in_memory_size_cache import InMemorySizeCache
from domain.models import ChapterNode, Point, Size, Story
from domain.services.positioning import (
    LayoutConfig,
    deepest_last_id,
    height_of,
    position_below,
    position_beside,
    position_for_chapter_after,
    round_half_up,
)
from tests.helpers.story_fixtures import make_story


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.5, 3), (2.4, 2), (60.0, 60), (50.5, 51), (-2.5, -2), (-2.6, -3)],
)
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


def test_height_prefers_measured_size(outline: Story, size_cache: InMemorySizeCache) -> None:
    assert height_of(outline, "t1", size_cache) == 160.0
    assert height_of(outline, "s1") == 120.0
    assert height_of(outline, "p1") == 140.0
    size_cache.set_size("t1", Size(300.0, 95.0))
    assert height_of(outline, "t1", size_cache) == 95.0


def test_height_of_unknown_node_uses_text_default(outline: Story) -> None:
    assert height_of(outline, "missing") == 160.0


def test_position_below_uses_half_height_and_buffer(
    outline: Story, size_cache: InMemorySizeCache
) -> None:
    assert position_below(outline, "s1") == Point(100.0, 360.0 + 60 + 200)
    size_cache.set_size("t2", Size(200.0, 101.0))
    assert position_below(outline, "t2", size_cache) == Point(100.0, 980.0 + 51 + 200)


def test_position_below_missing_anchor_falls_back(outline: Story) -> None:
    assert position_below(outline, "missing") == Point(100.0, 300.0)


def test_deepest_last_follows_last_children(outline: Story) -> None:
    assert deepest_last_id(outline, "c1") == "t3"
    assert deepest_last_id(outline, "c2") == "e1"
    assert deepest_last_id(outline, "t3") == "t3"


def test_chapter_after_sits_right_of_tail(outline: Story) -> None:
    assert position_for_chapter_after(outline, "c1") == Point(1600.0, 1600.0)


def test_chapter_after_empty_chapter() -> None:
    story = make_story(ChapterNode(id="c", position=Point(40.0, 70.0)))
    assert position_for_chapter_after(story, "c") == Point(1540.0, 70.0)


def test_media_is_placed_beside_parent(outline: Story) -> None:
    assert position_beside(outline, "t1", "picture") == Point(250.0, 620.0)
    assert position_beside(outline, "t1", "annotation") == Point(250.0, 670.0)
    assert position_beside(outline, "t1", "event") == Point(250.0, 720.0)


def test_custom_config_changes_buffer(outline: Story) -> None:
    config = LayoutConfig(buffer_y=50.0)
    assert position_below(outline, "s1", config=config) == Point(100.0, 470.0)
