from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from adapters.images.in_memory_image_store import InMemoryImageStore
from adapters.metrics.in_memory_size_cache import InMemorySizeCache
from app.config import AppSettings, EngineSettings, LayoutSettings
from domain.models import Story
from domain.services.story_engine import StoryEngine
from tests.helpers.story_fixtures import load_story_fixture, sequential_ids


def _clear_story_canvas_env() -> None:
    for key in list(os.environ):
        if key.startswith("STORY_CANVAS_"):
            os.environ.pop(key, None)


_clear_story_canvas_env()


@pytest.fixture(autouse=True)
def clear_story_canvas_env() -> Generator[None, None, None]:
    _clear_story_canvas_env()
    yield
    _clear_story_canvas_env()


@pytest.fixture
def outline() -> Story:
    return load_story_fixture("outline.json")


@pytest.fixture
def size_cache() -> InMemorySizeCache:
    return InMemorySizeCache()


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def engine_factory(
    size_cache: InMemorySizeCache, image_store: InMemoryImageStore
) -> Callable[..., StoryEngine]:
    def _factory(story: Story | None = None, **overrides: object) -> StoryEngine:
        options: dict[str, object] = {
            "sizes": size_cache,
            "images": image_store,
            "id_factory": sequential_ids(),
        }
        options.update(overrides)
        return StoryEngine(story, **options)  # type: ignore[arg-type]

    return _factory


@pytest.fixture
def engine_settings(tmp_path: Path) -> EngineSettings:
    return EngineSettings(
        history_limit=50,
        story_path=tmp_path / "story.json",
        log_level="warning",
        layout=LayoutSettings(),
    )


@pytest.fixture
def engine_settings_factory(engine_settings: EngineSettings) -> Callable[..., EngineSettings]:
    def _factory(**overrides: object) -> EngineSettings:
        return engine_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(engine_settings: EngineSettings) -> AppSettings:
    return AppSettings(engine=engine_settings)
