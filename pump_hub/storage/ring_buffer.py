"""Buffer circular de lecturas recientes (fallback en memoria)."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from ..core.domain import SensorReading

DEFAULT_CAPACITY = 100


class ReadingRingBuffer:
    """Últimas ``capacity`` lecturas, la más antigua se descarta primero."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._items: Deque[SensorReading] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def append(self, reading: SensorReading) -> None:
        self._items.append(reading)

    def latest(self) -> Optional[SensorReading]:
        return self._items[-1] if self._items else None

    def since(self, cutoff: datetime, limit: int) -> List[SensorReading]:
        """Lecturas capturadas desde ``cutoff``: las ``limit`` más recientes, en orden cronológico."""
        if limit <= 0:
            return []
        selected = [r for r in self._items if r.timestamp >= cutoff]
        return selected[-limit:]

    def __len__(self) -> int:
        return len(self._items)
