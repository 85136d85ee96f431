"""
Round-robin provider selection that skips providers over budget.
"""

from __future__ import annotations

from threading import RLock

from ..models import ProviderConfig
from .call_monitor import CallMonitor


class ProviderRotator:
    """
    Keeps a start index into the rotation order.

    ``next_provider`` never blocks: when every provider is over budget it
    rewinds to the first one and returns it anyway.
    """

    def __init__(self, order: list[str]):
        if not order:
            raise ValueError("rotation order cannot be empty")
        self._order = list(order)
        self._index = 0
        self._lock = RLock()

    @property
    def order(self) -> list[str]:
        return list(self._order)

    @property
    def current_index(self) -> int:
        return self._index

    def next_provider(
        self,
        monitor: CallMonitor,
        configs: dict[str, ProviderConfig],
        exclude: set[str] | None = None,
    ) -> str:
        exclude = exclude or set()
        with self._lock:
            size = len(self._order)
            for step in range(size):
                index = (self._index + step) % size
                name = self._order[index]
                if name in exclude:
                    continue
                if monitor.can_call(name, configs[name]):
                    self._index = index
                    return name
            self._index = 0
            return self._order[0]

    def advance(self) -> None:
        with self._lock:
            self._index = (self._index + 1) % len(self._order)

    def reset(self) -> None:
        with self._lock:
            self._index = 0
