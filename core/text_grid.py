"""
TextGrid — boolean occupancy grid populated from recognised text boxes.

Population happens in a worker task while debug rendering may read at
the same time, so access goes through a readers/writer lock.
"""
from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator

import numpy as np

from domain.models import Rect, TextObservation

TEXT_CELL = "▓"
EMPTY_CELL = "░"


class ReadWriteLock:
    """Many concurrent readers, one exclusive writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class TextGrid:
    """
    Parameters
    ----------
    size : int
        Grid is ``size x size`` cells, row-major, origin top-left.
    """

    def __init__(self, size: int = 60) -> None:
        if size <= 0:
            raise ValueError(f"TextGrid size must be > 0, got {size}")
        self._size = size
        self._cells = np.zeros((size, size), dtype=bool)
        self._lock = ReadWriteLock()

    @property
    def size(self) -> int:
        return self._size

    # ------------------------------------------------------------------
    def clear(self) -> None:
        with self._lock.write():
            self._cells[:] = False

    def mark(self, observations: Iterable[TextObservation]) -> None:
        """Mark every cell overlapped by an observation box (at least one cell per box)."""
        with self._lock.write():
            for observation in observations:
                r0, r1, c0, c1 = self._cell_range(observation.box)
                self._cells[r0:r1 + 1, c0:c1 + 1] = True

    def snapshot(self) -> np.ndarray:
        with self._lock.read():
            return self._cells.copy()

    def occupied_count(self) -> int:
        with self._lock.read():
            return int(self._cells.sum())

    def render(self) -> str:
        """Debug view, one text line per grid row."""
        with self._lock.read():
            return "\n".join(
                "".join(TEXT_CELL if cell else EMPTY_CELL for cell in row)
                for row in self._cells
            )

    # ------------------------------------------------------------------
    def _cell_range(self, box: Rect):
        # detector coordinates have the origin bottom-left, the grid top-left
        n = self._size
        min_row = int((1.0 - box.max_y) * n)
        max_row = int((1.0 - box.min_y) * n)
        min_col = int(box.min_x * n)
        max_col = int(box.max_x * n)

        r0 = max(0, min(min_row, n - 1))
        r1 = max(r0, min(max_row, n - 1))
        c0 = max(0, min(min_col, n - 1))
        c1 = max(c0, min(max_col, n - 1))
        return r0, r1, c0, c1
