from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCHEMA_VERSION = "1.0"
DEFAULT_STORY_TITLE = "Untitled Story"

NodeType = Literal["chapter", "scene", "text", "picture", "annotation", "event"]
StickerCorner = Literal["top-left", "top-right", "bottom-left", "bottom-right"]

NODE_TYPES: tuple[NodeType, ...] = ("chapter", "scene", "text", "picture", "annotation", "event")
MEDIA_TYPES: frozenset[str] = frozenset({"picture", "annotation", "event"})

# child type -> allowed parent types; None marks top level
PARENT_RULES: Dict[str, frozenset[Optional[str]]] = {
    "chapter": frozenset({None}),
    "scene": frozenset({"chapter"}),
    "text": frozenset({"scene"}),
    "picture": frozenset({"chapter", "scene", "text"}),
    "annotation": frozenset({"chapter", "scene", "text"}),
    "event": frozenset({"chapter", "scene", "text"}),
}


def is_valid_parent(child_type: str, parent_type: Optional[str]) -> bool:
    allowed = PARENT_RULES.get(child_type)
    if allowed is None:
        return False
    return parent_type in allowed


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def translated(self, dx: float, dy: float) -> Point:
        return Point(self.x + dx, self.y + dy)


@dataclass(frozen=True)
class Size:
    width: float
    height: float


def _unique_tags(tags: List[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for tag in tags:
        text = str(tag).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


class BaseNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    position: Point = Point(0.0, 0.0)


class ChapterNode(BaseNode):
    type: Literal["chapter"] = "chapter"
    title: str = ""
    description: Optional[str] = None


class SceneNode(BaseNode):
    type: Literal["scene"] = "scene"
    title: str = ""
    description: Optional[str] = None


class Sticker(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_index: int = Field(..., ge=1, le=7, alias="imageIndex")
    corner: StickerCorner = "top-right"


class TextNode(BaseNode):
    type: Literal["text"] = "text"
    text: str = ""
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    sticker: Optional[Sticker] = None

    @field_validator("tags", mode="after")
    @classmethod
    def ensure_unique_tags(cls, tags: List[str]) -> List[str]:
        return _unique_tags(tags)


class PictureNode(BaseNode):
    type: Literal["picture"] = "picture"
    description: str = ""
    url: Optional[str] = None


class AnnotationNode(BaseNode):
    type: Literal["annotation"] = "annotation"
    text: str = ""


class EventNode(BaseNode):
    type: Literal["event"] = "event"
    year: int
    month: Optional[int] = Field(default=None, ge=1, le=12)
    day: Optional[int] = Field(default=None, ge=1, le=31)
    title: str = ""
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="after")
    @classmethod
    def ensure_unique_tags(cls, tags: List[str]) -> List[str]:
        return _unique_tags(tags)


StoryNode = Annotated[
    Union[ChapterNode, SceneNode, TextNode, PictureNode, AnnotationNode, EventNode],
    Field(discriminator="type"),
]

NODE_CLASSES: Dict[str, type[BaseNode]] = {
    "chapter": ChapterNode,
    "scene": SceneNode,
    "text": TextNode,
    "picture": PictureNode,
    "annotation": AnnotationNode,
    "event": EventNode,
}


class Story(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = DEFAULT_STORY_TITLE
    node_map: Dict[str, StoryNode] = Field(default_factory=dict, alias="nodeMap")
    order: List[str] = Field(default_factory=list)
    children_order: Dict[str, List[str]] = Field(default_factory=dict, alias="childrenOrder")

    @classmethod
    def blank(cls, title: str = DEFAULT_STORY_TITLE) -> Story:
        return cls(title=title)

    def clone(self) -> Story:
        return self.model_copy(deep=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, payload: dict) -> Story:
        return cls.model_validate(payload)
