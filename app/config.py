from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.models import Point
from domain.services.history import DEFAULT_HISTORY_LIMIT
from domain.services.positioning import DEFAULT_HEIGHTS, MEDIA_OFFSETS, LayoutConfig

DEFAULT_CONFIG_PATH = Path("config/story_canvas.yaml")

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class LayoutSettings(BaseModel):
    buffer_y: float = 200.0
    chapter_x_offset: float = 1500.0
    insert_gap_text_y: float = 300.0
    insert_gap_scene_y: float = 300.0
    insert_gap_chapter_x: float = 1600.0
    fallback_x: float = 100.0
    fallback_y: float = 100.0
    default_heights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_HEIGHTS))

    @field_validator("default_heights", mode="before")
    @classmethod
    def merge_default_heights(cls, value: object) -> dict[str, float]:
        merged = dict(DEFAULT_HEIGHTS)
        if value is None or value == "":
            return merged
        if not isinstance(value, dict):
            msg = "layout.default_heights must be a mapping of node type to height"
            raise ValueError(msg)
        unknown = sorted(str(key) for key in value if key not in DEFAULT_HEIGHTS)
        if unknown:
            msg = f"layout.default_heights has unknown node types: {', '.join(unknown)}"
            raise ValueError(msg)
        merged.update({str(key): float(item) for key, item in value.items()})
        return merged

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            buffer_y=self.buffer_y,
            chapter_x_offset=self.chapter_x_offset,
            insert_gap_text_y=self.insert_gap_text_y,
            insert_gap_scene_y=self.insert_gap_scene_y,
            insert_gap_chapter_x=self.insert_gap_chapter_x,
            fallback_position=Point(self.fallback_x, self.fallback_y),
            default_heights=dict(self.default_heights),
            media_offsets=dict(MEDIA_OFFSETS),
        )


class EngineSettings(BaseModel):
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)
    story_path: Path = Path("data/story.json")
    log_level: str = "WARNING"
    layout: LayoutSettings = LayoutSettings()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        level = str(value or "WARNING").strip().upper()
        if level not in _LOG_LEVELS:
            msg = f"engine.log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}"
            raise ValueError(msg)
        return level


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STORY_CANVAS_", env_nested_delimiter="__")

    engine: EngineSettings = EngineSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("STORY_CANVAS_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
