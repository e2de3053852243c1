"""
StateMachine — thread-safe finite-state machine with a pluggable validator.

This is the only place that decides whether a state change is legal.
Everything else routes transitions through it.
"""
from __future__ import annotations
import threading
from typing import Callable, Generic, Iterable, Optional, Tuple, TypeVar

S = TypeVar("S")

Validator = Callable[[S, S], bool]


class StateMachine(Generic[S]):
    """
    Parameters
    ----------
    initial : S
        The starting state.
    validator : callable(from, to) -> bool, optional
        Decides whether ``from -> to`` is allowed. ``None`` allows everything.
    """

    def __init__(self, initial: S, validator: Optional[Validator] = None) -> None:
        self._state = initial
        self._validator = validator
        self._lock = threading.Lock()

    @classmethod
    def from_table(cls, initial: S, allowed: Iterable[Tuple[S, S]]) -> "StateMachine[S]":
        """
        Build a machine from an explicit list of allowed ``(from, to)`` pairs.
        Re-entering the current state is always allowed.
        """
        pairs = list(allowed)

        def validator(from_state: S, to_state: S) -> bool:
            if from_state == to_state:
                return True
            return any(f == from_state and t == to_state for f, t in pairs)

        return cls(initial, validator)

    # ------------------------------------------------------------------
    def transition(self, to: S) -> bool:
        """Apply ``to`` if the validator allows it. Returns whether it was applied."""
        with self._lock:
            allowed = self._validator(self._state, to) if self._validator else True
            if allowed:
                self._state = to
            return allowed

    def current(self) -> S:
        with self._lock:
            return self._state

    @property
    def state(self) -> S:
        return self.current()

    def __repr__(self) -> str:
        return f"<StateMachine state={self.current()!r}>"
