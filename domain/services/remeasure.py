from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass
class RemeasureTracker:
    previous_heights: dict[str, float] = field(default_factory=dict)
    last_deltas: dict[str, float] = field(default_factory=dict)

    def observe(self, node_id: str, height: float, suppressed: bool = False) -> float | None:
        previous = self.previous_heights.get(node_id, 0.0)
        self.previous_heights[node_id] = height
        if suppressed or previous <= 0:
            return None
        delta = height - previous
        if delta == 0:
            return None
        # a delta of the same magnitude as the last one we applied is our own echo
        if abs(delta) == abs(self.last_deltas.get(node_id, 0.0)):
            return None
        self.last_deltas[node_id] = delta
        return delta

    def forget(self, node_id: str) -> None:
        self.previous_heights.pop(node_id, None)
        self.last_deltas.pop(node_id, None)

    def retain(self, node_ids: Iterable[str]) -> None:
        keep = set(node_ids)
        for stale_id in [node_id for node_id in self.previous_heights if node_id not in keep]:
            self.forget(stale_id)
        for stale_id in [node_id for node_id in self.last_deltas if node_id not in keep]:
            self.last_deltas.pop(stale_id, None)

    def reset(self) -> None:
        self.previous_heights.clear()
        self.last_deltas.clear()
