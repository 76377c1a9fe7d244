"""Point reduction for traced polylines.

Two greedy passes per polyline with at least three points:

    1. Decimation keeps every Nth point (by index), the first point, and the
       last point; points in the final N/2 positions before the end are
       dropped so the last kept interval is not a stub.
    2. Angle cut slides a window of three points and drops the middle one
       while the angle it forms exceeds the limit (i.e. the run is nearly
       straight), re-testing the same position against the new neighbour.

The first and last points of a polyline always survive, so splice points
shared between polylines stay identical for loop search and joining.
"""

import math
from typing import List, Sequence

from ..errors import InvalidParameterError
from ..utils.geometry import Point, corner_angle


def decimate(points: Sequence[Point], keep_every: int) -> List[Point]:
    """Keep every ``keep_every``-th point plus the endpoints.

    Examples
    --------
    >>> decimate([(i, 0) for i in range(10)], 4)
    [(0, 0), (4, 0), (9, 0)]
    """
    if keep_every < 1:
        raise InvalidParameterError(f"Decimation factor must be >= 1, got {keep_every}")
    n = len(points)
    if n < 3:
        return list(points)
    half = keep_every // 2
    kept = [
        points[i]
        for i in range(n - 1)
        if i % keep_every == 0 and (i < n - half or i == 0)
    ]
    kept.append(points[-1])
    return kept


def angle_cut(points: List[Point], angle_limit: float) -> None:
    """Drop near-straight middle points in place.

    A middle point coinciding with a neighbour has no defined angle and is
    dropped as redundant.
    """
    i = 0
    while i <= len(points) - 3:
        angle = corner_angle(points[i], points[i + 1], points[i + 2])
        if math.isnan(angle) or angle > angle_limit:
            del points[i + 1]
        else:
            i += 1


def simplify_lines(lines: List[List[Point]], initial_cut: int, angle_limit: float) -> None:
    """Decimate and angle-cut every polyline with three or more points, in place.

    Parameters
    ----------
    lines : List[List[Point]]
        Polylines; each list object is modified in place
    initial_cut : int
        Decimation factor N
    angle_limit : float
        Angle in radians above which a middle point is dropped
    """
    for line in lines:
        if len(line) < 3:
            continue
        line[:] = decimate(line, initial_cut)
        angle_cut(line, angle_limit)
