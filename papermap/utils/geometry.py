"""Geometric operations on pixel polylines.

Provides:
    - Polyline length and bounding box
    - Corner angle at a vertex from the law of cosines
    - Compactness test used to reject tiny loops

A polyline is any sequence of (x, y) pairs: a list of tuples while the
line graph is being built, or an array of shape (N, 2). All coordinates in
pixels (image frame, top-left origin, +Y down) until the final normalisation.
"""

import math
from typing import Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


def polyline_length(points: Sequence[Point]) -> float:
    """Sum of Euclidean distances between consecutive points.

    Parameters
    ----------
    points : Sequence[Point]
        Polyline vertices, N ≥ 0

    Returns
    -------
    float
        Total length; 0.0 for fewer than two points
    """
    if len(points) < 2:
        return 0.0
    pts = np.asarray(points, dtype=np.float64)
    return float(np.linalg.norm(np.diff(pts, axis=0), axis=1).sum())


def polyline_bbox(points: Sequence[Point]) -> Tuple[float, float, float, float]:
    """Axis-aligned bounding box as (x_min, y_min, x_max, y_max)."""
    pts = np.asarray(points, dtype=np.float64)
    if pts.size == 0:
        return (0.0, 0.0, 0.0, 0.0)
    x_min, y_min = pts.min(axis=0)
    x_max, y_max = pts.max(axis=0)
    return (float(x_min), float(y_min), float(x_max), float(y_max))


def corner_angle(a: Point, b: Point, c: Point) -> float:
    """Interior angle at ``b`` of the triangle a-b-c, in radians.

    Returns pi for a perfectly straight run and values near 0 for a sharp
    switch-back. Returns NaN when ``b`` coincides with ``a`` or ``c``.

    Notes
    -----
    Law of cosines: cos(B) = (|ab|² + |bc|² - |ac|²) / (2·|ab|·|bc|).
    The cosine is clipped to [-1, 1] against rounding error.
    """
    side_ac = math.hypot(a[0] - c[0], a[1] - c[1])
    side_ab = math.hypot(a[0] - b[0], a[1] - b[1])
    side_bc = math.hypot(b[0] - c[0], b[1] - c[1])
    if side_ab == 0.0 or side_bc == 0.0:
        return float("nan")
    cos_b = (side_ab * side_ab + side_bc * side_bc - side_ac * side_ac) / (2.0 * side_ab * side_bc)
    return math.acos(max(-1.0, min(1.0, cos_b)))


def is_compact(points: Sequence[Point], size: float) -> bool:
    """True if some vertex lies within ``size`` (per axis, strictly) of every vertex.

    Parameters
    ----------
    points : Sequence[Point]
        Polyline vertices
    size : float
        Per-axis distance limit in pixels

    Returns
    -------
    bool
        Whether the polyline is geometrically tiny
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.size == 0:
        return False
    lo = pts.min(axis=0)
    hi = pts.max(axis=0)
    # Farthest per-axis distance from each vertex to any other vertex
    reach = np.maximum(pts - lo, hi - pts)
    return bool(np.any(np.all(reach < size, axis=1)))
