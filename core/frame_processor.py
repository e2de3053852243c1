"""
ContinuousFrameProcessor — pulls the camera frame stream, throttles it to
a target FPS (latest frame wins) and hands each frame to a callback.
"""
from __future__ import annotations
import asyncio
import logging
import time
from typing import Callable, Optional

from domain.interfaces import CameraSource
from domain.models import CameraFrame

logger = logging.getLogger(__name__)


class ContinuousFrameProcessor:
    """
    Parameters
    ----------
    camera : CameraSource
    target_fps : float
        Maximum number of frames forwarded per second.
    """

    def __init__(self, camera: CameraSource, target_fps: float = 16.0) -> None:
        self._camera = camera
        self._interval = 1.0 / target_fps
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        on_frame: Callable[[CameraFrame], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """
        Forward throttled frames to ``on_frame``. When the camera stream
        fails the error is logged and passed to ``on_error``.
        """
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(on_frame, on_error))
        logger.info("ContinuousFrameProcessor started")

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("ContinuousFrameProcessor stopped")

    # ------------------------------------------------------------------
    async def _run(
        self,
        on_frame: Callable[[CameraFrame], None],
        on_error: Optional[Callable[[Exception], None]],
    ) -> None:
        last_sent = 0.0
        try:
            async for frame in self._camera.frames():
                now = time.monotonic()
                if now - last_sent >= self._interval:
                    last_sent = now
                    on_frame(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Camera frame stream failed")
            if self._task is asyncio.current_task():
                self._task = None
            if on_error is not None:
                on_error(exc)
