"""
Pure geometric utility functions.
No imports from the rest of the project - safe to use anywhere.
"""
from __future__ import annotations
import math
from typing import Sequence, Tuple

Point2D = Tuple[float, float]


def dist(a: Point2D, b: Point2D) -> float:
    """Euclidean distance between two 2D points."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (-0.5 -> -1)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def centroid(points: Sequence[Point2D]) -> Point2D:
    """Geometric centroid of a point list."""
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    n = len(points)
    return (sum(xs) / n, sum(ys) / n)


def linear_fit_at(xs: Sequence[float], ys: Sequence[float], at: float) -> float | None:
    """
    Ordinary least-squares fit of ys against xs, evaluated at ``at``.
    Returns None when the fit is degenerate (all xs identical or no samples).
    """
    n = len(xs)
    if n == 0 or n != len(ys):
        return None
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xy = sum(x * y for x, y in zip(xs, ys))
    sum_x2 = sum(x * x for x in xs)

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return None
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope * at + intercept


def winding_number(point: Point2D, polygon: Sequence[Point2D]) -> int:
    """
    Winding number of ``polygon`` around ``point``.
    Non-zero means the point is inside.
    """
    px, py = point
    wn = 0
    n = len(polygon)
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]
        is_left = (x2 - x1) * (py - y1) - (px - x1) * (y2 - y1)
        if y1 <= py:
            if y2 > py and is_left > 0:
                wn += 1
        elif y2 <= py and is_left < 0:
            wn -= 1
    return wn
