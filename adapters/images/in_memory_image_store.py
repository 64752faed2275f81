from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from domain.ports.images import ImageStore


class InMemoryImageStore(ImageStore):
    """Opaque node id -> image payload mapping kept alongside the story."""

    def __init__(self, images: Mapping[str, Any] | None = None) -> None:
        self._images: dict[str, Any] = dict(images or {})

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._images)

    def restore(self, images: Mapping[str, Any]) -> None:
        self._images = copy.deepcopy(dict(images))

    def get_image(self, node_id: str) -> Any | None:
        return self._images.get(node_id)

    def set_image(self, node_id: str, payload: Any) -> None:
        self._images[node_id] = payload

    def remove_image(self, node_id: str) -> None:
        self._images.pop(node_id, None)

    def clear(self) -> None:
        self._images.clear()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._images
