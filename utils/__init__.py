"""
Small helpers shared by the guidance core
"""

from .geometry import centroid, clamp, dist, linear_fit_at, round_half_away, winding_number
from .ring_buffer import RingBuffer

__all__ = [
    'RingBuffer',
    'centroid',
    'clamp',
    'dist',
    'linear_fit_at',
    'round_half_away',
    'winding_number',
]
