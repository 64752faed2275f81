from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class ImageStore(Protocol):
    def snapshot(self) -> dict[str, Any]: ...

    def restore(self, images: Mapping[str, Any]) -> None: ...

    def remove_image(self, node_id: str) -> None: ...
