from __future__ import annotations

from pathlib import Path
from typing import Protocol

from domain.models import Story


class StoryRepository(Protocol):
    def load(self, path: Path) -> Story: ...

    def save(self, story: Story, path: Path) -> None: ...
