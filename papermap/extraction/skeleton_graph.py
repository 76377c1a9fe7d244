"""Trace a one-pixel-wide skeleton into polylines.

Two passes over the skeleton mask:

1. Junk removal. A foreground pixel with three or more foreground neighbours
   is cleared when those neighbours stay mutually 8-connected without it;
   failing that, the first of its 4-neighbours whose own (two or more)
   neighbours stay connected without it is cleared. After a clearing the
   same pixel is tested again, together with already scanned pixels next to
   the cleared one, before the scan moves on.
2. Walking. Pixels are visited in row-major order. An unclaimed pixel is
   classified by its number of unclaimed neighbours:
       0  isolated point, dropped
       1  line end, walk toward the neighbour
       2  mid-line, walk both ways and splice the halves at the pixel
       3+ junction, walk each branch
   A walk extends while the current pixel has exactly one unclaimed neighbour;
   with several it ends there and each neighbour becomes a new branch starting
   at that pixel.

Every pixel is claimed at most once, recorded in one boolean grid. A branch
whose first pixel was claimed by an earlier branch is emitted as the two-point
edge [junction, pixel] and not walked further; this keeps cycles in the
skeleton closed in the resulting line graph. Walks use an explicit stack, so
skeleton size does not hit the interpreter recursion limit.

Points are (x, y) integer tuples; polylines are lists of points.
"""

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..errors import InvalidParameterError

logger = logging.getLogger(__name__)

Pixel = Tuple[int, int]
Polyline = List[Pixel]

# (dx, dy), column by column
_OFFSETS = [(-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1)]
# left, right, up, down
_FOUR_OFFSETS = [(-1, 0), (1, 0), (0, -1), (0, 1)]


def foreground_neighbours(fg: np.ndarray, x: int, y: int,
                          claimed: Optional[np.ndarray] = None) -> List[Pixel]:
    """In-bounds foreground 8-neighbours of (x, y), optionally skipping claimed ones."""
    H, W = fg.shape
    out = []
    for dx, dy in _OFFSETS:
        nx, ny = x + dx, y + dy
        if 0 <= nx < W and 0 <= ny < H and fg[ny, nx]:
            if claimed is None or not claimed[ny, nx]:
                out.append((nx, ny))
    return out


def mutually_connected(points: List[Pixel]) -> bool:
    """True if ``points`` form one group under Chebyshev distance <= 1 (transitively)."""
    if not points:
        return True
    reached = [points[0]]
    pending = list(points[1:])
    grew = True
    while pending and grew:
        grew = False
        for p in list(pending):
            if any(abs(p[0] - q[0]) <= 1 and abs(p[1] - q[1]) <= 1 for q in reached):
                reached.append(p)
                pending.remove(p)
                grew = True
    return not pending


def _redundant(fg: np.ndarray, x: int, y: int, min_neighbours: int) -> bool:
    if not fg[y, x]:
        return False
    nbrs = foreground_neighbours(fg, x, y)
    return len(nbrs) >= min_neighbours and mutually_connected(nbrs)


def _clear_redundant_near(fg: np.ndarray, x: int, y: int) -> Optional[Pixel]:
    """Clear (x, y) or one of its 4-neighbours if redundant; returns the cleared pixel.

    The 4-neighbours only need two mutually connected neighbours, which catches
    the corner pixel of a 4-connected L step next to a junction.
    """
    if _redundant(fg, x, y, 3):
        fg[y, x] = False
        return (x, y)
    H, W = fg.shape
    for dx, dy in _FOUR_OFFSETS:
        nx, ny = x + dx, y + dy
        if 0 <= nx < W and 0 <= ny < H and _redundant(fg, nx, ny, 2):
            fg[ny, nx] = False
            return (nx, ny)
    return None


def remove_junk_pixels(fg: np.ndarray) -> int:
    """Clear redundant pixels around junctions in place; returns how many were cleared."""
    u8 = fg.astype(np.uint8)
    degree = cv2.filter2D(u8, -1, np.ones((3, 3), np.uint8)) - u8
    candidates = np.argwhere(fg & (degree >= 3))

    removed = 0
    for cy, cx in candidates:
        scan_pos = (int(cy), int(cx))
        stack = [(int(cx), int(cy))]
        while stack:
            x, y = stack.pop()
            if not fg[y, x] or len(foreground_neighbours(fg, x, y)) < 3:
                continue
            cleared = _clear_redundant_near(fg, x, y)
            if cleared is None:
                continue
            removed += 1
            # Test the same pixel again, plus already scanned pixels next to the
            # cleared one; later pixels are reached by the scan itself
            stack.append((x, y))
            stack.extend(
                p for p in foreground_neighbours(fg, cleared[0], cleared[1])
                if (p[1], p[0]) < scan_pos
            )
    return removed


class SkeletonTracer:
    """Walks one skeleton mask; create a new tracer per mask.

    Parameters
    ----------
    skeleton : np.ndarray
        Thinned mask, shape (H, W), dtype bool. Not modified.
    """

    def __init__(self, skeleton: np.ndarray):
        if skeleton.ndim != 2:
            raise InvalidParameterError(f"Expected 2D skeleton mask, got shape {skeleton.shape}")
        self.fg = np.array(skeleton, dtype=bool, copy=True)
        self.claimed = np.zeros_like(self.fg)
        self.junk_removed = 0

    def _claim(self, p: Pixel) -> None:
        self.claimed[p[1], p[0]] = True

    def _walk(self, start: Pixel, first: Pixel) -> List[Polyline]:
        """Walk from ``start`` through ``first``; the first polyline returned is the root."""
        self._claim(start)
        out: List[Polyline] = []
        stack = [(start, first)]
        while stack:
            base, direction = stack.pop()
            line = [base, direction]
            if self.claimed[direction[1], direction[0]]:
                out.append(line)
                continue
            self._claim(direction)

            current = direction
            while True:
                options = foreground_neighbours(self.fg, current[0], current[1], self.claimed)
                if not options:
                    break
                if len(options) == 1:
                    current = options[0]
                    self._claim(current)
                    line.append(current)
                    continue
                # Junction: branches are popped in neighbour order
                stack.extend((current, o) for o in reversed(options))
                break
            out.append(line)
        return out

    def trace(self) -> List[Polyline]:
        """Run junk removal and walking; returns the polylines."""
        self.junk_removed = remove_junk_pixels(self.fg)

        lines: List[Polyline] = []
        for y, x in np.argwhere(self.fg):
            base = (int(x), int(y))
            if self.claimed[base[1], base[0]]:
                continue
            nbrs = foreground_neighbours(self.fg, base[0], base[1], self.claimed)

            if len(nbrs) == 0:
                continue
            if len(nbrs) == 1:
                lines.extend(self._walk(base, nbrs[0]))
            elif len(nbrs) == 2:
                first_half = self._walk(base, nbrs[0])
                second_half = self._walk(base, nbrs[1])
                joined = first_half[0]
                joined.reverse()
                joined.extend(second_half[0][1:])
                lines.extend(first_half)
                lines.extend(second_half[1:])
            else:
                for n in nbrs:
                    lines.extend(self._walk(base, n))

        return lines


def trace_skeleton(skeleton: np.ndarray) -> List[Polyline]:
    """Convert a thinned mask into polylines of (x, y) pixel tuples.

    Parameters
    ----------
    skeleton : np.ndarray
        Thinned mask, shape (H, W), dtype bool

    Returns
    -------
    List[Polyline]
        Polylines in discovery order; consecutive points are 8-adjacent
    """
    tracer = SkeletonTracer(skeleton)
    lines = tracer.trace()
    logger.debug(
        f"Traced {len(lines)} polylines from {int(skeleton.sum())} skeleton pixels "
        f"({tracer.junk_removed} junk pixels removed)"
    )
    return lines
