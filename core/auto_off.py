"""
AutoOffTimer — inactivity timeout that pauses a search feature so the
camera and speech pipeline never run forever unattended.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

AUTO_OFF_DISABLED = 0
AUTO_OFF_SECONDARY = 1
AUTO_OFF_PRIMARY = 2


def auto_off_seconds(index: int, primary: float, secondary: float) -> Optional[float]:
    """Map the user preference index to a duration; None means auto-off is disabled."""
    if index <= AUTO_OFF_DISABLED:
        return None
    return secondary if index == AUTO_OFF_SECONDARY else primary


class AutoOffTimer:
    """
    Parameters
    ----------
    on_expire : callable
        Invoked once on the event loop when the timer fires.
    """

    def __init__(self, on_expire: Callable[[], None]) -> None:
        self._on_expire = on_expire
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self, seconds: float) -> None:
        """(Re)start the countdown. Must be called from the event loop thread."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(seconds, self._fire)
        logger.debug("Auto-off armed for %.1fs", seconds)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        logger.info("Auto-off timer expired")
        self._on_expire()
