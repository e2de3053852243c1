"""
OperationBag — collects everything a session must cancel on stop
(asyncio tasks, timers, disposables) and cancels it in one go.
"""
from __future__ import annotations
import threading
from typing import Callable, List, Optional, Protocol


class Cancellable(Protocol):
    def cancel(self) -> object:
        ...


class Disposable:
    """Wraps a cleanup callback so it can sit in an OperationBag. Runs at most once."""

    def __init__(self, action: Callable[[], None]) -> None:
        self._action: Optional[Callable[[], None]] = action
        self._lock = threading.Lock()

    @property
    def disposed(self) -> bool:
        return self._action is None

    def cancel(self) -> None:
        with self._lock:
            action, self._action = self._action, None
        if action is not None:
            action()


class OperationBag:

    def __init__(self) -> None:
        self._ops: List[Cancellable] = []
        self._lock = threading.Lock()

    def add(self, op: Cancellable) -> Cancellable:
        with self._lock:
            self._ops.append(op)
        return op

    def discard(self, op: Cancellable) -> None:
        """Forget an operation that finished on its own."""
        with self._lock:
            if op in self._ops:
                self._ops.remove(op)

    def cancel_all(self) -> int:
        """Drain the bag, then cancel every operation. Returns how many were cancelled."""
        with self._lock:
            ops, self._ops = self._ops, []
        for op in ops:
            op.cancel()
        return len(ops)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ops)
