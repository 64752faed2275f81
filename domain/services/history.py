from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from domain.models import Story

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class HistorySnapshot:
    story: Story
    images: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(cls, story: Story, images: Mapping[str, Any] | None = None) -> HistorySnapshot:
        return cls(story=story.clone(), images=copy.deepcopy(dict(images or {})))

    def restore_story(self) -> Story:
        return self.story.clone()

    def restore_images(self) -> dict[str, Any]:
        return copy.deepcopy(self.images)


class HistoryManager:
    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            msg = f"History limit must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self.past: deque[HistorySnapshot] = deque(maxlen=limit)
        self.future: list[HistorySnapshot] = []
        self._layout_suppressed = False

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    @property
    def layout_suppressed(self) -> bool:
        return self._layout_suppressed

    def push(self, story: Story, images: Mapping[str, Any] | None = None) -> None:
        self.past.append(HistorySnapshot.capture(story, images))
        self.future.clear()
        logger.debug("History snapshot pushed (past=%d)", len(self.past))

    def undo(
        self, story: Story, images: Mapping[str, Any] | None = None
    ) -> HistorySnapshot | None:
        if not self.past:
            return None
        previous = self.past.pop()
        self.future.append(HistorySnapshot.capture(story, images))
        logger.debug("Undo (past=%d, future=%d)", len(self.past), len(self.future))
        return previous

    def redo(
        self, story: Story, images: Mapping[str, Any] | None = None
    ) -> HistorySnapshot | None:
        if not self.future:
            return None
        following = self.future.pop()
        self.past.append(HistorySnapshot.capture(story, images))
        logger.debug("Redo (past=%d, future=%d)", len(self.past), len(self.future))
        return following

    def clear(self) -> None:
        self.past.clear()
        self.future.clear()

    def suppress_layout(self) -> None:
        self._layout_suppressed = True

    def release_layout(self) -> None:
        self._layout_suppressed = False

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        previous = self._layout_suppressed
        self._layout_suppressed = True
        try:
            yield
        finally:
            self._layout_suppressed = previous
