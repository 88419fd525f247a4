"""
Planar polygon helpers shared by the metrics engine.

All helpers take an ordered vertex sequence of (x, y) pairs describing a
closed polygon (the last vertex wraps back to the first; the closing vertex
is not repeated).
"""
from typing import Sequence, Tuple

import numpy as np

Bounds = Tuple[float, float, float, float]

_EPS = 1e-12


def as_array(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Vertex list as an (N, 2) float array."""
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2), dtype=float)
    return arr.reshape(-1, 2)


def polygon_bounds(points: Sequence[Sequence[float]]) -> Bounds:
    """Axis-aligned bounds as (min_x, min_y, max_x, max_y)."""
    arr = as_array(points)
    if len(arr) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    mins = arr.min(axis=0)
    maxs = arr.max(axis=0)
    return (float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))


def vertex_centroid(points: Sequence[Sequence[float]]) -> Tuple[float, float]:
    """Arithmetic mean of the vertices.

    This is not the area-weighted centroid; densely sampled stretches of the
    outline pull it toward themselves.
    """
    arr = as_array(points)
    if len(arr) == 0:
        return (0.0, 0.0)
    mean = arr.mean(axis=0)
    return (float(mean[0]), float(mean[1]))


def shoelace_area(points: Sequence[Sequence[float]]) -> float:
    """Unsigned polygon area by the shoelace formula (0 below 3 vertices)."""
    arr = as_array(points)
    if len(arr) < 3:
        return 0.0
    x = arr[:, 0]
    y = arr[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    return float(abs(np.sum(x * y_next - x_next * y)) / 2.0)


def mirror_x(points: Sequence[Sequence[float]], axis_x: float) -> np.ndarray:
    """Reflect vertices across the vertical line x = axis_x."""
    arr = as_array(points).copy()
    arr[:, 0] = 2.0 * axis_x - arr[:, 0]
    return arr


def turning_angles(points: Sequence[Sequence[float]]) -> np.ndarray:
    """Signed turning angle (radians) at each vertex of the closed outline.

    Zero-length segments are dropped before measuring, so repeated vertices
    do not contribute. Returns an empty array when fewer than 3 distinct
    segments remain or any coordinate is non-finite.
    """
    arr = as_array(points)
    if len(arr) < 3 or not np.all(np.isfinite(arr)):
        return np.zeros(0, dtype=float)

    segments = np.roll(arr, -1, axis=0) - arr
    lengths = np.linalg.norm(segments, axis=1)
    segments = segments[lengths > _EPS]
    if len(segments) < 3:
        return np.zeros(0, dtype=float)

    incoming = np.roll(segments, 1, axis=0)
    cross = incoming[:, 0] * segments[:, 1] - incoming[:, 1] * segments[:, 0]
    dot = np.einsum("ij,ij->i", incoming, segments)
    return np.arctan2(cross, dot)
