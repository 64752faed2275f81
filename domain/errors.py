from __future__ import annotations

from typing import ClassVar


class StoryError(Exception):
    code: ClassVar[str] = "story_error"

    def __init__(self, message: str, node_id: str | None = None) -> None:
        super().__init__(message)
        self.node_id = node_id


class NodeNotFoundError(StoryError):
    code = "not_found"


class TypeMismatchError(StoryError):
    code = "type_mismatch"


class InvalidParentError(StoryError):
    code = "invalid_parent"


class CycleDetectedError(StoryError):
    code = "cycle_detected"


class InvalidReorderError(StoryError):
    code = "invalid_reorder"


class InvalidUpdateError(StoryError):
    code = "invalid_update"


class InvalidStoryError(StoryError):
    code = "invalid_story"
