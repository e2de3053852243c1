"""
CentralTextClusterDetector — isolates the block of text nearest the
centre of a boolean occupancy grid (e.g. ignores the facing page of an
open book).

Grid coordinates are row-major with the origin at the top-left. The
resulting quad is in normalised detector coordinates (origin bottom-left).

Steps:
  1. seed = occupied cell nearest the grid centre
  2. grow a base rectangle while the next row/column is mostly filled
  3. scan outward on each side for a strip that is mostly empty
     (left/right also try a few tilted strips to follow skewed pages)
  4. intersect the four boundary lines into a quad
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np

from domain.models import BoundingQuad, Point
from utils.geometry import round_half_away

logger = logging.getLogger(__name__)

GridLike = Union[np.ndarray, Sequence[Sequence[bool]]]

VERTICAL = 90.0
HORIZONTAL = 0.0


@dataclass(frozen=True)
class ClusterParameters:
    empty_threshold: float = 0.9
    vert_gap: int = 8
    horiz_gap: int = 1
    diag_degree_step: float = 5.0
    diag_steps: int = 4
    base_fill_empty_threshold: float = 0.1


class _Boundary(NamedTuple):
    row: int
    col: int
    angle: float   # degrees relative to horizontal


class _Line(NamedTuple):
    x: float
    y: float
    angle: float

    @property
    def is_vertical(self) -> bool:
        return abs(self.angle - VERTICAL) < 1.0

    @property
    def is_horizontal(self) -> bool:
        return abs(self.angle) < 1.0

    @property
    def slope(self) -> float:
        return math.tan(math.radians(self.angle))


class CentralTextClusterDetector:
    """
    One-shot detector: build it with a grid and call ``detect()`` once.

    Parameters
    ----------
    grid : array-like of bool, shape (rows, cols)
    params : ClusterParameters
    """

    def __init__(self, grid: GridLike, params: ClusterParameters = ClusterParameters()) -> None:
        arr = np.asarray(grid, dtype=bool)
        if arr.ndim != 2:
            arr = arr.reshape((0, 0))
        self._grid = arr
        self._rows, self._cols = arr.shape
        self._empty_threshold = params.empty_threshold
        self._vert_gap = max(1, params.vert_gap)
        self._horiz_gap = max(1, params.horiz_gap)
        self._diag_degree_step = params.diag_degree_step
        self._diag_steps = params.diag_steps
        self._base_fill_empty_threshold = params.base_fill_empty_threshold

    # ------------------------------------------------------------------
    def detect(self) -> Optional[BoundingQuad]:
        """Quad around the central cluster, or None for an empty grid."""
        if self._rows == 0 or self._cols == 0:
            return None
        seed = self._nearest_central_cell()
        if seed is None:
            return None
        logger.debug("SEED cell at (row:%d, col:%d)", *seed)

        min_r, max_r, min_c, max_c = self._grow_base(*seed)
        logger.debug("BASE cluster rows %d..%d cols %d..%d", min_r, max_r, min_c, max_c)

        top = self._scan_top(min_r, min_c, max_c)
        bottom = self._scan_bottom(max_r, min_c, max_c)
        left = self._scan_left(min_c, min_r, max_r)
        right = self._scan_right(max_c, min_r, max_r)
        for name, b in (("TOP", top), ("BOTTOM", bottom), ("LEFT", left), ("RIGHT", right)):
            logger.debug("BOUNDARY %-6s (row:%d,col:%d), angle:%.0f", name, b.row, b.col, b.angle)

        top_l, bottom_l = self._to_line(top), self._to_line(bottom)
        left_l, right_l = self._to_line(left), self._to_line(right)

        quad = BoundingQuad(
            top_left=_intersection(left_l, top_l),
            top_right=_intersection(right_l, top_l),
            bottom_right=_intersection(right_l, bottom_l),
            bottom_left=_intersection(left_l, bottom_l),
        )
        logger.debug("Quad %s", quad)
        return quad

    # ---- seed + base growth -------------------------------------------
    def _nearest_central_cell(self) -> Optional[Tuple[int, int]]:
        occupied = np.argwhere(self._grid)
        if occupied.size == 0:
            return None
        center = np.array([self._rows // 2, self._cols // 2])
        distances = np.hypot(*(occupied - center).T)
        # argmin returns the first minimum in row-major order
        r, c = occupied[int(np.argmin(distances))]
        return int(r), int(c)

    def _grow_base(self, seed_r: int, seed_c: int) -> Tuple[int, int, int, int]:
        min_r = max_r = seed_r
        min_c = max_c = seed_c
        threshold = self._base_fill_empty_threshold
        up = down = left = right = True

        while up or down or left or right:
            if up:
                up = min_r > 0 and self._empty_ratio_rows(min_r - 1, min_r - 1, min_c, max_c) < threshold
                if up:
                    min_r -= 1
            if down:
                down = max_r + 1 < self._rows and self._empty_ratio_rows(max_r + 1, max_r + 1, min_c, max_c) < threshold
                if down:
                    max_r += 1
            if left:
                left = min_c > 0 and self._empty_ratio_cols(min_c - 1, min_c - 1, min_r, max_r) < threshold
                if left:
                    min_c -= 1
            if right:
                right = max_c + 1 < self._cols and self._empty_ratio_cols(max_c + 1, max_c + 1, min_r, max_r) < threshold
                if right:
                    max_c += 1
        return min_r, max_r, min_c, max_c

    # ---- boundary scanning --------------------------------------------
    def _scan_top(self, min_r: int, min_c: int, max_c: int) -> _Boundary:
        gap = self._vert_gap
        col = (min_c + max_c) // 2
        edge = min_r - 1
        while edge - gap + 1 >= 0:
            r0 = edge - gap + 1
            ratio = self._empty_ratio_rows(r0, edge, min_c, max_c)
            logger.debug("SCAN TOP rows %d-%d empty=%.2f", r0, edge, ratio)
            if ratio >= self._empty_threshold:
                return _Boundary(r0 + gap // 2, col, HORIZONTAL)
            edge -= 1
        logger.debug("TOP boundary fallback to FRAME EDGE (row:0)")
        return _Boundary(0, col, HORIZONTAL)

    def _scan_bottom(self, max_r: int, min_c: int, max_c: int) -> _Boundary:
        gap = self._vert_gap
        col = (min_c + max_c) // 2
        edge = max_r + gap
        while edge < self._rows:
            r0 = edge - gap + 1
            ratio = self._empty_ratio_rows(r0, edge, min_c, max_c)
            logger.debug("SCAN BOTTOM rows %d-%d empty=%.2f", r0, edge, ratio)
            if ratio >= self._empty_threshold:
                return _Boundary(r0 + gap // 2, col, HORIZONTAL)
            edge += 1
        logger.debug("BOTTOM boundary fallback to FRAME EDGE (row:%d)", self._rows - 1)
        return _Boundary(self._rows - 1, col, HORIZONTAL)

    def _scan_left(self, min_c: int, min_r: int, max_r: int) -> _Boundary:
        gap = self._horiz_gap
        row = (min_r + max_r) // 2
        edge = min_c - 1
        while edge - gap + 1 >= 0:
            c0 = edge - gap + 1
            ratio, angle = self._best_empty_ratio_cols(c0, edge, min_r, max_r)
            logger.debug("SCAN LEFT cols %d-%d empty=%.2f angle=%.0f", c0, edge, ratio, angle)
            if ratio >= self._empty_threshold:
                return _Boundary(row, c0 + gap // 2, angle)
            edge -= 1
        logger.debug("LEFT boundary fallback to FRAME EDGE (col:0)")
        return _Boundary(row, 0, VERTICAL)

    def _scan_right(self, max_c: int, min_r: int, max_r: int) -> _Boundary:
        gap = self._horiz_gap
        row = (min_r + max_r) // 2
        edge = max_c + gap
        while edge < self._cols:
            c0 = edge - gap + 1
            ratio, angle = self._best_empty_ratio_cols(c0, edge, min_r, max_r)
            logger.debug("SCAN RIGHT cols %d-%d empty=%.2f angle=%.0f", c0, edge, ratio, angle)
            if ratio >= self._empty_threshold:
                return _Boundary(row, c0 + gap // 2, angle)
            edge += 1
        logger.debug("RIGHT boundary fallback to FRAME EDGE (col:%d)", self._cols - 1)
        return _Boundary(row, self._cols - 1, VERTICAL)

    # ---- strip analytics ----------------------------------------------
    def _empty_ratio_rows(self, r0: int, r1: int, c0: int, c1: int) -> float:
        if r0 < 0 or r1 >= self._rows:
            return 1.0
        strip = self._grid[r0:r1 + 1, c0:c1 + 1]
        return 1.0 - float(strip.sum()) / strip.size

    def _empty_ratio_cols(self, c0: int, c1: int, r0: int, r1: int) -> float:
        if c0 < 0 or c1 >= self._cols:
            return 1.0
        strip = self._grid[r0:r1 + 1, c0:c1 + 1]
        return 1.0 - float(strip.sum()) / strip.size

    def _empty_ratio_diag(self, c0: int, c1: int, r0: int, r1: int, shift: int) -> float:
        """Tilted strip: each row is sampled with a column offset pivoting on the middle row."""
        height = r1 - r0 + 1
        if height <= 0:
            return 1.0
        pivot = (height - 1) / 2.0
        filled = considered = 0
        for offset in range(height):
            rel = (offset - pivot) / max(1.0, pivot)
            col_shift = round_half_away(rel * shift)
            lo = max(0, c0 + col_shift)
            hi = min(self._cols - 1, c1 + col_shift)
            if lo > hi:
                continue
            cells = self._grid[r0 + offset, lo:hi + 1]
            considered += cells.size
            filled += int(cells.sum())
        if considered == 0:
            return 1.0
        return (considered - filled) / considered

    def _best_empty_ratio_cols(self, c0: int, c1: int, r0: int, r1: int) -> Tuple[float, float]:
        """Best emptiness over the straight strip and its tilted variants, with its angle."""
        if c0 < 0 or c1 >= self._cols:
            return 1.0, VERTICAL
        best_ratio = self._empty_ratio_cols(c0, c1, r0, r1)
        best_angle = VERTICAL
        height = r1 - r0 + 1
        for step in range(1, self._diag_steps + 1):
            degrees = self._diag_degree_step * step
            half_shift = round_half_away(math.tan(math.radians(degrees)) * height / 2)
            for sign in (-1, 1):
                ratio = self._empty_ratio_diag(c0, c1, r0, r1, half_shift * sign)
                if ratio > best_ratio:
                    best_ratio = ratio
                    best_angle = VERTICAL + degrees * sign
        return best_ratio, best_angle

    # ---- geometry -----------------------------------------------------
    def _to_line(self, b: _Boundary) -> _Line:
        x = b.col / self._cols
        y = (self._rows - 1 - b.row) / self._rows
        return _Line(x, y, b.angle)


def _intersection(a: _Line, b: _Line) -> Point:
    """Intersection of two boundary lines, special-casing vertical/horizontal ones."""
    if a.is_vertical and not b.is_vertical:
        return Point(a.x, b.slope * (a.x - b.x) + b.y)
    if b.is_vertical and not a.is_vertical:
        return _intersection(b, a)
    if a.is_horizontal and not b.is_vertical:
        return Point((a.y - b.y) / b.slope + b.x, a.y)
    if b.is_horizontal and not a.is_vertical:
        return _intersection(b, a)
    ma, mb = a.slope, b.slope
    x = (ma * a.x - mb * b.x + b.y - a.y) / (ma - mb)
    return Point(x, ma * (x - a.x) + a.y)
