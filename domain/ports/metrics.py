from __future__ import annotations

from typing import Protocol

from domain.models import Size


class SizeCache(Protocol):
    def get_height(self, node_id: str) -> float | None: ...

    def get_size(self, node_id: str) -> Size | None: ...

    def set_size(self, node_id: str, size: Size) -> None: ...

    def forget(self, node_id: str) -> None: ...
