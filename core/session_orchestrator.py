"""
SessionOrchestrator — the backbone every feature session is built on.

Wraps a StateMachine, adds an ``is_paused`` flag and broadcasts both
the state and the paused flag to subscribers. Broadcast happens only
after the transition is committed, and mutation + emission are
serialised so subscribers never see states out of order.
"""
from __future__ import annotations
import logging
import threading
from typing import AsyncIterator, Callable, Generic, Optional, TypeVar

from core.broadcast import ValueChannel
from core.state_machine import StateMachine, Validator

logger = logging.getLogger(__name__)

S = TypeVar("S")


class SessionOrchestrator(Generic[S]):
    """
    Parameters
    ----------
    initial_state : S
        The very first state of the session.
    label : str
        Name used in log lines (e.g. ``"search-item.state"``).
    is_allowed : callable(from, to) -> bool, optional
        Transition validator handed to the underlying StateMachine.
    """

    def __init__(
        self,
        initial_state: S,
        label: str,
        is_allowed: Optional[Validator] = None,
    ) -> None:
        self._machine: StateMachine[S] = StateMachine(initial_state, is_allowed)
        self._label = label
        self._lock = threading.RLock()
        self._is_paused = False
        self._state_channel: ValueChannel[S] = ValueChannel(initial_state)
        self._paused_channel: ValueChannel[bool] = ValueChannel(False)

    # ---- state ---------------------------------------------------------
    @property
    def state(self) -> S:
        return self._machine.current()

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def label(self) -> str:
        return self._label

    def transition(self, to: S) -> bool:
        """
        Request ``current -> to``.

        Returns False without broadcasting when ``to`` equals the current
        state or when the validator rejects the pair.
        """
        with self._lock:
            old = self._machine.current()
            if old == to:
                logger.debug("[%s] Ignoring no-op transition to the same state: %s", self._label, to)
                return False

            allowed = self._machine.transition(to)
            if allowed:
                logger.info("[%s] State transition: %s -> %s", self._label, old, to)
                self._state_channel.send(to)
            else:
                logger.warning("[%s] Invalid state transition attempted: %s -> %s", self._label, old, to)
            return allowed

    # ---- pause flag ----------------------------------------------------
    def pause(self) -> None:
        with self._lock:
            self._is_paused = True
            self._paused_channel.send(True)

    def resume(self) -> None:
        with self._lock:
            self._is_paused = False
            self._paused_channel.send(False)

    # ---- observation ---------------------------------------------------
    def subscribe(self, callback: Callable[[S], None]) -> Callable[[], None]:
        return self._state_channel.subscribe(callback)

    def subscribe_paused(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        return self._paused_channel.subscribe(callback)

    def state_stream(self) -> AsyncIterator[S]:
        return self._state_channel.stream()

    def paused_stream(self) -> AsyncIterator[bool]:
        return self._paused_channel.stream()

    def close(self) -> None:
        """Finish all streams (the orchestrator's owner is going away)."""
        self._state_channel.close()
        self._paused_channel.close()

    def __repr__(self) -> str:
        return f"<SessionOrchestrator {self._label} state={self.state} paused={self._is_paused}>"
