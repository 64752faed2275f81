from __future__ import annotations

from pathlib import Path

from filelock import FileLock
from pydantic import ValidationError

from adapters.filesystem.json_utils import load_json, write_json_atomic
from domain.errors import InvalidStoryError
from domain.models import Story
from domain.ports.repositories import StoryRepository


class FileSystemStoryRepository(StoryRepository):
    def load(self, path: Path) -> Story:
        if not path.exists():
            return Story.blank()
        with FileLock(str(self._lock_path(path))):
            payload = load_json(path)
        try:
            return Story.from_dict(payload)
        except ValidationError as exc:
            msg = f"Story file {path} is not a valid story: {exc.errors(include_url=False)}"
            raise InvalidStoryError(msg) from exc

    def save(self, story: Story, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(str(self._lock_path(path))):
            write_json_atomic(path, story.to_dict())

    @staticmethod
    def _lock_path(path: Path) -> Path:
        return path.with_suffix(f"{path.suffix}.lock")
