from __future__ import annotations

from domain.models import Size
from domain.ports.metrics import SizeCache


class InMemorySizeCache(SizeCache):
    def __init__(self) -> None:
        self._sizes: dict[str, Size] = {}

    def get_height(self, node_id: str) -> float | None:
        size = self._sizes.get(node_id)
        return size.height if size is not None else None

    def get_size(self, node_id: str) -> Size | None:
        return self._sizes.get(node_id)

    def set_size(self, node_id: str, size: Size) -> None:
        self._sizes[node_id] = size

    def forget(self, node_id: str) -> None:
        self._sizes.pop(node_id, None)

    def clear(self) -> None:
        self._sizes.clear()

    def __len__(self) -> int:
        return len(self._sizes)
