"""
OpenCVCamera — CameraSource backed by cv2.VideoCapture.

Blocking reads run in a worker thread so the event loop stays free.
Torch control is not available through OpenCV.
"""
from __future__ import annotations
import asyncio
import logging
import time
from typing import AsyncIterator, Optional

import cv2
import numpy as np

from domain.interfaces import CameraSource
from domain.models import CameraFrame

logger = logging.getLogger(__name__)


class OpenCVCamera(CameraSource):
    """
    Parameters
    ----------
    device : int
        Camera index (0 = default webcam).
    fps_limit : int
        Maximum frames per second produced by frames().
    """

    def __init__(self, device: int = 0, fps_limit: int = 30) -> None:
        self._cap = cv2.VideoCapture(device)
        self._frame_time = 1.0 / fps_limit
        self._prev_time: float = 0.0
        self._zoom: float = 1.0

        if not self._cap.isOpened():
            raise RuntimeError(f"Cannot open camera device {device}")

    # ------------------------------------------------------------------
    def read(self) -> Optional[np.ndarray]:
        """Blocking read. Returns None on read failure."""
        ret, frame = self._cap.read()
        if not ret:
            return None
        return self._apply_zoom(frame)

    async def single_frame(self) -> CameraFrame:
        while True:
            image = await asyncio.to_thread(self.read)
            if image is not None:
                return CameraFrame(image=image)
            logger.warning("Empty frame, retrying")
            await asyncio.sleep(0.05)

    async def frames(self) -> AsyncIterator[CameraFrame]:
        while True:
            # FPS limiting
            wait = self._frame_time - (time.monotonic() - self._prev_time)
            if wait > 0:
                await asyncio.sleep(wait)
            self._prev_time = time.monotonic()

            image = await asyncio.to_thread(self.read)
            if image is None:
                logger.warning("Empty frame, retrying")
                await asyncio.sleep(0.05)
                continue
            yield CameraFrame(image=image)

    def set_zoom(self, factor: float) -> None:
        self._zoom = max(1.0, factor)

    def release(self) -> None:
        self._cap.release()

    def __enter__(self) -> "OpenCVCamera":
        return self

    def __exit__(self, *_) -> None:
        self.release()

    # ------------------------------------------------------------------
    def _apply_zoom(self, frame: np.ndarray) -> np.ndarray:
        if self._zoom <= 1.0:
            return frame
        h, w = frame.shape[:2]
        ch, cw = int(h / self._zoom), int(w / self._zoom)
        y0, x0 = (h - ch) // 2, (w - cw) // 2
        crop = frame[y0:y0 + ch, x0:x0 + cw]
        return cv2.resize(crop, (w, h), interpolation=cv2.INTER_LINEAR)
