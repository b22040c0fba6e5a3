"""
FORMCOACH Coach Service - Geometry

Angle helpers for 2D landmark positions (image coordinates, y grows downward).
All results are in degrees and folded into [0, 180].
"""

from typing import Sequence, Union

import numpy as np

Point = Union[Sequence[float], np.ndarray]


def normalize_angle(degrees: float) -> float:
    """Fold an angle in degrees into [0, 180]."""
    folded = abs(float(degrees)) % 360.0
    if folded > 180.0:
        folded = 360.0 - folded
    return folded


def _vector(start: Point, end: Point) -> np.ndarray:
    return np.asarray(end, dtype=float)[:2] - np.asarray(start, dtype=float)[:2]


def segment_angle(start: Point, end: Point) -> float:
    """
    Signed direction of the vector start -> end, in degrees.

    Uses atan2(dy, dx), so 0 points right and 90 points down the image.
    A zero-length vector returns 0.
    """
    v = _vector(start, end)
    if not v.any():
        return 0.0
    return float(np.degrees(np.arctan2(v[1], v[0])))


def angle_between(origin: Point, a: Point, b: Point) -> float:
    """
    Angle at `origin` between the vectors origin -> a and origin -> b.

    Args:
        origin: Vertex point (x, y)
        a: End of the first vector
        b: End of the second vector

    Returns:
        Angle in degrees (0-180). 0 when either vector has zero length.
    """
    va = _vector(origin, a)
    vb = _vector(origin, b)
    if not va.any() or not vb.any():
        return 0.0

    diff = np.arctan2(va[1], va[0]) - np.arctan2(vb[1], vb[0])
    return normalize_angle(np.degrees(diff))


def angle_from_vertical(start: Point, end: Point) -> float:
    """
    Deviation of the vector start -> end from the vertical axis.

    A segment hanging straight down (e.g. hip above knee while standing)
    gives 0, a horizontal segment gives 90.
    """
    if not _vector(start, end).any():
        return 0.0
    return normalize_angle(90.0 - segment_angle(start, end))
