"""Coordinator that owns the published story and its undo history.

Every mutation runs a pure action against the published story, and only a
successful action pushes a snapshot and publishes the new value. Remeasurement
goes through two phases: ``report_node_size`` updates the size cache and
``apply_layout_delta`` shifts the layout when a real change was observed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from domain.errors import InvalidStoryError, StoryError
from domain.models import Point, Size, Story
from domain.ports.images import ImageStore
from domain.ports.metrics import SizeCache
from domain.services import node_actions
from domain.services.connect_targets import compute_targets
from domain.services.history import DEFAULT_HISTORY_LIMIT, HistoryManager, HistorySnapshot
from domain.services.layout_shifts import apply_height_delta
from domain.services.move_node import MoveSpec
from domain.services.move_node import move_node as move_node_action
from domain.services.move_node import reorder_chapters as reorder_chapters_action
from domain.services.node_actions import EditResult, IdFactory, new_node_id
from domain.services.positioning import LayoutConfig
from domain.services.remeasure import RemeasureTracker
from domain.services.story_validation import find_story_issues

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    node_id: str | None = None
    error: StoryError | None = None


class StoryEngine:
    def __init__(
        self,
        story: Story | None = None,
        *,
        sizes: SizeCache | None = None,
        images: ImageStore | None = None,
        config: LayoutConfig | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        id_factory: IdFactory = new_node_id,
    ) -> None:
        self._story = story.clone() if story is not None else Story.blank()
        self._sizes = sizes
        self._images = images
        self._config = config or LayoutConfig()
        self._id_factory = id_factory
        self._history = HistoryManager(history_limit)
        self._tracker = RemeasureTracker()
        self._dragging = False

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def config(self) -> LayoutConfig:
        return self._config

    @property
    def dragging(self) -> bool:
        return self._dragging

    def get_current_story(self) -> Story:
        return self._story.clone()

    # -- internals ---------------------------------------------------------

    def _image_snapshot(self) -> dict[str, Any]:
        return self._images.snapshot() if self._images is not None else {}

    def _push_history(self) -> None:
        self._history.push(self._story, self._image_snapshot())

    def _run(
        self,
        action: str,
        edit: Callable[[], EditResult],
        *,
        record: bool = True,
    ) -> ActionResult:
        try:
            result = edit()
        except StoryError as exc:
            logger.warning("%s failed [%s]: %s", action, exc.code, exc)
            return ActionResult(ok=False, node_id=exc.node_id, error=exc)
        if record:
            self._push_history()
        self._story = result.story
        logger.debug("%s applied to %s", action, result.node_id)
        return ActionResult(ok=True, node_id=result.node_id)

    def _restore(self, snapshot: HistorySnapshot) -> None:
        self._story = snapshot.restore_story()
        self._tracker.retain(self._story.node_map)
        if self._images is not None:
            self._images.restore(snapshot.restore_images())

    def _forget_nodes(self, node_ids: Iterable[str]) -> None:
        for node_id in node_ids:
            self._tracker.forget(node_id)
            if self._sizes is not None:
                self._sizes.forget(node_id)
            if self._images is not None:
                self._images.remove_image(node_id)

    def _delete(self, node_id: str, expected_type: str | None) -> ActionResult:
        try:
            result = node_actions.delete_node(self._story, node_id, expected_type)
        except StoryError as exc:
            logger.warning("delete failed [%s]: %s", exc.code, exc)
            return ActionResult(ok=False, node_id=exc.node_id, error=exc)
        self._push_history()
        self._story = result.story
        self._forget_nodes(result.affected)
        return ActionResult(ok=True, node_id=node_id)

    # -- creation ----------------------------------------------------------

    def create_chapter(
        self,
        title: str = "New Chapter",
        insert_after_id: str | None = None,
        *,
        description: str | None = None,
    ) -> ActionResult:
        return self._run(
            "create_chapter",
            lambda: node_actions.create_chapter(
                self._story,
                title,
                insert_after_id,
                description=description,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    def create_scene(
        self,
        chapter_id: str,
        title: str = "New Scene",
        insert_after_id: str | None = None,
        at_start: bool = False,
        *,
        description: str | None = None,
    ) -> ActionResult:
        return self._run(
            "create_scene",
            lambda: node_actions.create_scene(
                self._story,
                chapter_id,
                title,
                insert_after_id,
                at_start,
                description=description,
                sizes=self._sizes,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    def create_text(
        self,
        scene_id: str,
        insert_after_id: str | None = None,
        at_start: bool = False,
        *,
        text: str = "",
        summary: str | None = None,
        tags: Iterable[str] = (),
        sticker: Mapping[str, Any] | None = None,
    ) -> ActionResult:
        return self._run(
            "create_text",
            lambda: node_actions.create_text(
                self._story,
                scene_id,
                insert_after_id,
                at_start,
                text=text,
                summary=summary,
                tags=tags,
                sticker=sticker,
                sizes=self._sizes,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    def create_picture(
        self,
        parent_id: str,
        insert_after_id: str | None = None,
        *,
        description: str = "",
        url: str | None = None,
    ) -> ActionResult:
        return self._run(
            "create_picture",
            lambda: node_actions.create_picture(
                self._story,
                parent_id,
                insert_after_id,
                description=description,
                url=url,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    def create_annotation(
        self,
        parent_id: str,
        insert_after_id: str | None = None,
        *,
        text: str = "",
    ) -> ActionResult:
        return self._run(
            "create_annotation",
            lambda: node_actions.create_annotation(
                self._story,
                parent_id,
                insert_after_id,
                text=text,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    def create_event(
        self,
        parent_id: str,
        insert_after_id: str | None = None,
        *,
        year: int | None = None,
        month: int | None = None,
        day: int | None = None,
        title: str = "",
        description: str | None = None,
        tags: Iterable[str] = (),
    ) -> ActionResult:
        return self._run(
            "create_event",
            lambda: node_actions.create_event(
                self._story,
                parent_id,
                insert_after_id,
                year=year,
                month=month,
                day=day,
                title=title,
                description=description,
                tags=tags,
                config=self._config,
                id_factory=self._id_factory,
            ),
        )

    # -- updates -----------------------------------------------------------

    def update_node(
        self,
        node_id: str,
        fields: Mapping[str, Any],
        expected_type: str | None = None,
    ) -> ActionResult:
        return self._run(
            "update_node",
            lambda: node_actions.update_node(self._story, node_id, fields, expected_type),
        )

    def update_chapter(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "chapter")

    def update_scene(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "scene")

    def update_text(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "text")

    def update_picture(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "picture")

    def update_annotation(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "annotation")

    def update_event(self, node_id: str, **fields: Any) -> ActionResult:
        return self.update_node(node_id, fields, "event")

    def update_story_title(self, title: str) -> ActionResult:
        return self._run("update_story_title", lambda: node_actions.set_story_title(self._story, title))

    # -- deletion ----------------------------------------------------------

    def delete_node(self, node_id: str) -> ActionResult:
        return self._delete(node_id, None)

    def delete_chapter(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "chapter")

    def delete_scene(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "scene")

    def delete_text(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "text")

    def delete_picture(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "picture")

    def delete_annotation(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "annotation")

    def delete_event(self, node_id: str) -> ActionResult:
        return self._delete(node_id, "event")

    # -- structure ---------------------------------------------------------

    def move_node(
        self,
        node_id: str,
        new_parent_id: str | None,
        insert_after_id: str | None = None,
        at_start: bool = False,
    ) -> ActionResult:
        return self._run(
            "move_node",
            lambda: move_node_action(self._story, node_id, new_parent_id, insert_after_id, at_start),
        )

    def reorder_chapters(self, new_order: Sequence[str]) -> ActionResult:
        return self._run("reorder_chapters", lambda: reorder_chapters_action(self._story, new_order))

    def connect_targets(self, source_id: str) -> dict[str, MoveSpec]:
        return compute_targets(self._story, source_id)

    def reset_story(self, title: str | None = None) -> ActionResult:
        self._push_history()
        self._story = Story.blank(title) if title else Story.blank()
        self._tracker.reset()
        if self._images is not None:
            self._images.restore({})
        return ActionResult(ok=True)

    def replace_story(self, story: Story, skip_history: bool = False) -> ActionResult:
        issues = find_story_issues(story)
        if issues:
            first = issues[0]
            error = InvalidStoryError(
                f"Story has {len(issues)} structural issue(s); first: {first.message}",
                first.node_id,
            )
            logger.warning("replace_story rejected [%s]: %s", error.code, error)
            return ActionResult(ok=False, node_id=first.node_id, error=error)
        if not skip_history:
            self._push_history()
        self._story = story.clone()
        self._tracker.retain(self._story.node_map)
        return ActionResult(ok=True)

    # -- history -----------------------------------------------------------

    def undo(self) -> ActionResult:
        snapshot = self._history.undo(self._story, self._image_snapshot())
        if snapshot is None:
            return ActionResult(ok=False)
        self._history.suppress_layout()
        self._restore(snapshot)
        return ActionResult(ok=True)

    def redo(self) -> ActionResult:
        snapshot = self._history.redo(self._story, self._image_snapshot())
        if snapshot is None:
            return ActionResult(ok=False)
        self._history.suppress_layout()
        self._restore(snapshot)
        return ActionResult(ok=True)

    def end_frame(self) -> None:
        self._history.release_layout()

    # -- remeasurement -----------------------------------------------------

    def report_node_size(self, node_id: str, width: float, height: float) -> float | None:
        """Record a rendered size and shift the layout if the height changed.

        Returns the applied delta, or None when the report was informational.
        """
        if node_id not in self._story.node_map:
            return None
        if self._sizes is not None:
            self._sizes.set_size(node_id, Size(width, height))
        delta = self._tracker.observe(node_id, height, self._history.layout_suppressed)
        if delta is None:
            return None
        self.apply_layout_delta(node_id, delta)
        return delta

    def apply_layout_delta(self, node_id: str, delta_y: float) -> list[str]:
        if self._history.layout_suppressed or delta_y == 0 or node_id not in self._story.node_map:
            return []
        working = self._story.clone()
        moved = apply_height_delta(working, node_id, delta_y)
        if moved:
            self._story = working
            logger.debug("Height change of %s by %s moved %d node(s)", node_id, delta_y, len(moved))
        return moved

    # -- dragging ----------------------------------------------------------

    def begin_drag(self) -> None:
        if not self._dragging:
            self._push_history()
            self._dragging = True

    def end_drag(self) -> None:
        self._dragging = False

    def drag_node(self, node_id: str, dx: float, dy: float) -> ActionResult:
        return self._run(
            "drag_node",
            lambda: node_actions.translate_group(self._story, node_id, dx, dy),
            record=not self._dragging,
        )

    def update_node_position(
        self, node_id: str, position: Point, from_drag: bool = False
    ) -> ActionResult:
        return self.update_many_node_positions({node_id: position}, from_drag=from_drag)

    def update_many_node_positions(
        self, updates: Mapping[str, Point], from_drag: bool = True
    ) -> ActionResult:
        return self._run(
            "update_node_positions",
            lambda: node_actions.set_node_positions(self._story, updates),
            record=not from_drag,
        )
