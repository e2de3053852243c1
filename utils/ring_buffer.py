"""
RingBuffer — fixed-capacity circular buffer for bounded history.

Appends are O(1); once full, the oldest entry is overwritten.
Iteration is always chronological (oldest -> newest).
"""
from __future__ import annotations
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class RingBuffer(Generic[T]):
    """
    Parameters
    ----------
    capacity : int
        Number of slots. Must be > 0; the buffer is never resized.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"RingBuffer capacity must be > 0, got {capacity}")
        self._capacity = capacity
        self._slots: List[Optional[T]] = [None] * capacity
        self._next = 0
        self._count = 0

    # ------------------------------------------------------------------
    def append(self, value: T) -> None:
        self._slots[self._next] = value
        self._next = (self._next + 1) % self._capacity
        if self._count < self._capacity:
            self._count += 1

    @property
    def elements(self) -> List[T]:
        """Stored values, oldest first."""
        start = (self._next - self._count) % self._capacity
        return [
            self._slots[(start + i) % self._capacity]  # type: ignore[misc]
            for i in range(self._count)
        ]

    def remove_all(self) -> None:
        """Empty the buffer, keeping the backing slots."""
        for i in range(self._capacity):
            self._slots[i] = None
        self._next = 0
        self._count = 0

    def map(self, fn: Callable[[T], U]) -> List[U]:
        return [fn(v) for v in self.elements]

    # ---- accessors -----------------------------------------------------
    @property
    def count(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count == self._capacity

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[T]:
        return iter(self.elements)

    def __repr__(self) -> str:
        return f"<RingBuffer {self._count}/{self._capacity} {self.elements!r}>"
