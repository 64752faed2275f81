from __future__ import annotations

from adapters.filesystem.story_repository import FileSystemStoryRepository
from adapters.images.in_memory_image_store import InMemoryImageStore
from adapters.metrics.in_memory_size_cache import InMemorySizeCache
from app.config import AppSettings
from domain.models import Story
from domain.ports.repositories import StoryRepository
from domain.services.node_actions import IdFactory, new_node_id
from domain.services.story_engine import StoryEngine


def build_story_repository(settings: AppSettings) -> StoryRepository:
    return FileSystemStoryRepository()


def build_engine(
    settings: AppSettings,
    story: Story | None = None,
    *,
    id_factory: IdFactory = new_node_id,
) -> StoryEngine:
    engine_settings = settings.engine
    return StoryEngine(
        story,
        sizes=InMemorySizeCache(),
        images=InMemoryImageStore(),
        config=engine_settings.layout.to_layout_config(),
        history_limit=engine_settings.history_limit,
        id_factory=id_factory,
    )
