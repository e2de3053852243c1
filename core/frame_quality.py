"""
LaplacianSharpnessEvaluator — per-cell sharpness of a BGR frame.

The frame is split into a ``grid_size x grid_size`` grid; a cell is sharp
when the variance of its Laplacian reaches ``blur_threshold``.
"""
from __future__ import annotations
import logging
from typing import Optional

import cv2
import numpy as np

from domain.interfaces import FrameQualityEvaluator
from domain.models import CameraFrame, FrameSharpnessData

logger = logging.getLogger(__name__)


class LaplacianSharpnessEvaluator(FrameQualityEvaluator):
    """
    Parameters
    ----------
    grid_size : int
        Cells per side.
    blur_threshold : float
        Minimum Laplacian variance for a cell to count as sharp.
    """

    def __init__(self, grid_size: int = 10, blur_threshold: float = 100.0) -> None:
        if grid_size <= 0:
            raise ValueError(f"grid_size must be > 0, got {grid_size}")
        self._grid_size = grid_size
        self._blur_threshold = blur_threshold

    def evaluate(self, frame: CameraFrame) -> Optional[FrameSharpnessData]:
        image = frame.image
        if not isinstance(image, np.ndarray) or image.ndim not in (2, 3):
            logger.debug("Frame has no evaluable image")
            return None

        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
        h, w = gray.shape[:2]
        n = self._grid_size
        if h < n or w < n:
            logger.debug("Frame %dx%d too small for a %dx%d grid", w, h, n, n)
            return None

        row_edges = np.linspace(0, h, n + 1, dtype=int)
        col_edges = np.linspace(0, w, n + 1, dtype=int)
        laplacian = cv2.Laplacian(gray, cv2.CV_64F)

        rows = []
        sharp_count = 0
        for r in range(n):
            row = []
            for c in range(n):
                cell = laplacian[row_edges[r]:row_edges[r + 1], col_edges[c]:col_edges[c + 1]]
                sharp = bool(cell.var() >= self._blur_threshold)
                sharp_count += sharp
                row.append(sharp)
            rows.append(tuple(row))
        return FrameSharpnessData(sharpness_grid=tuple(rows), sharp_cell_count=sharp_count)
