"""Closed-loop detection among polylines, with removal of thinning artefacts.

Each polyline in turn is the root of a depth-first search over the line graph:
starting from the root's last point, follow any unused polyline that has an
endpoint there (lines starting there first, then lines ending there) until a
polyline ends on the root's first point. All candidates at a junction are
marked used as soon as the junction is expanded, so no polyline is entered
twice within one search. A root whose first and last points coincide is a
loop on its own.

A found loop is spurious when it is compact (some vertex within
``min_loop_size`` per axis of every vertex) and one of its polylines has
three or more other polylines sharing an endpoint with it. A spurious loop is
broken by deleting the longest run of its polylines between two anchors
(anchor = constituent with three or more such neighbours). Any other loop is
accepted: its polylines leave the working set and the concatenated ring,
without the repeated closing point, is emitted.

Polylines are compared by identity, never by value.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..utils.geometry import Point, is_compact, polyline_length

logger = logging.getLogger(__name__)

Polyline = List[Point]


def _shares_end(a: Sequence[Point], b: Sequence[Point]) -> bool:
    return a[0] == b[0] or a[0] == b[-1] or a[-1] == b[0] or a[-1] == b[-1]


def count_end_neighbours(lines: Sequence[Polyline], line: Polyline) -> int:
    """Number of other polylines sharing at least one endpoint with ``line``."""
    return sum(1 for other in lines if other is not line and _shares_end(line, other))


def endpoint_degree(lines: Sequence[Polyline], point: Point) -> int:
    """Number of polylines (any) with an endpoint at ``point``."""
    return sum(1 for line in lines if line[0] == point or line[-1] == point)


def _expand(lines: Sequence[Polyline], joint: Point, used: Dict[int, Polyline]) -> List[Tuple[Polyline, Point]]:
    """Unused polylines touching ``joint`` as (line, far end); marks them all used."""
    starting = [line for line in lines if line[0] == joint and id(line) not in used]
    ending = [line for line in lines if line[-1] == joint and id(line) not in used]
    for line in starting + ending:
        used[id(line)] = line
    return [(line, line[-1]) for line in starting] + [(line, line[0]) for line in ending]


def search_cycle(lines: Sequence[Polyline], root: Polyline) -> Optional[List[Polyline]]:
    """Find a cycle through ``root``; returns its polylines in traversal order or None."""
    goal = root[0]
    if root[-1] == goal:
        return [root]

    used = {id(root): root}
    path = [root]
    frames = [iter(_expand(lines, root[-1], used))]
    while frames:
        step = next(frames[-1], None)
        if step is None:
            frames.pop()
            path.pop()
            continue
        line, far = step
        if len(line) == 1:
            continue
        if far == goal:
            return path + [line]
        path.append(line)
        frames.append(iter(_expand(lines, far, used)))
    return None


def concatenate_cycle(chain: Sequence[Polyline]) -> Polyline:
    """Join a cycle's polylines end to start and drop the repeated closing point."""
    ring = list(chain[0])
    for line in chain[1:]:
        ring.extend(line[1:] if line[0] == ring[-1] else line[-2::-1])
    return ring[:-1]


def is_spurious(lines: Sequence[Polyline], chain: Sequence[Polyline], ring: Sequence[Point],
                min_loop_size: float) -> bool:
    """Compact loop sitting on a busy junction."""
    if not is_compact(ring, min_loop_size):
        return False
    return any(count_end_neighbours(lines, line) >= 3 for line in chain)


def longest_breakable_run(lines: Sequence[Polyline], chain: Sequence[Polyline]) -> List[Polyline]:
    """Longest run of ``chain`` between anchors, walking the cycle once.

    A run starts at the polyline after the previous run's end and ends at the
    next anchor, or immediately when its first polyline has busy junctions
    (three or more polylines) at both ends. Empty when no run closes.
    """
    n = len(chain)
    anchors = [count_end_neighbours(lines, line) >= 3 for line in chain]
    if not any(anchors):
        return []
    lengths = [polyline_length(line) for line in chain]
    start = anchors.index(True)

    best: Tuple[float, int, int] = (0.0, -1, -1)
    run_start: Optional[int] = None
    run_len = 0.0
    index = start
    while True:
        run_len += lengths[index]
        run_end: Optional[int] = None
        if run_start is None:
            run_start = index
            line = chain[index]
            if endpoint_degree(lines, line[0]) >= 3 and endpoint_degree(lines, line[-1]) >= 3:
                run_end = index
        elif anchors[index]:
            run_end = index

        if run_end is not None:
            if run_len > best[0]:
                best = (run_len, run_start, run_end)
            run_start = None
            run_len = 0.0

        index = (index + 1) % n
        if index == start:
            break

    _, first, last = best
    if first < 0:
        return []
    run = []
    index = first
    while True:
        run.append(chain[index])
        if index == last:
            return run
        index = (index + 1) % n


def _remove(lines: List[Polyline], targets: Sequence[Polyline]) -> List[int]:
    """Remove ``targets`` from ``lines`` by identity; returns their former indices."""
    doomed = {id(t) for t in targets}
    removed = [i for i, line in enumerate(lines) if id(line) in doomed]
    lines[:] = [line for line in lines if id(line) not in doomed]
    return removed


def extract_loops(lines: List[Polyline], min_loop_size: float) -> List[Polyline]:
    """Move closed cycles out of ``lines``; returns loops, longest first.

    Parameters
    ----------
    lines : List[Polyline]
        Working set of polylines, modified in place
    min_loop_size : float
        Per-axis size (px) below which a loop at a busy junction is an artefact

    Returns
    -------
    List[Polyline]
        Accepted loops sorted by path length, descending; the closing point
        is not repeated
    """
    loops: List[Polyline] = []
    broken = 0
    i = 0
    while i < len(lines):
        root = lines[i]
        if len(root) == 1:
            i += 1
            continue

        chain = search_cycle(lines, root)
        if chain is None:
            i += 1
            continue

        ring = concatenate_cycle(chain)
        if is_spurious(lines, chain, ring, min_loop_size):
            doomed = longest_breakable_run(lines, chain)
            broken += 1
        else:
            doomed = list(chain)
            loops.append(ring)

        removed = _remove(lines, doomed)
        shift = sum(1 for r in removed if r < i)
        i = i - shift + (0 if i in removed else 1)

    loops.sort(key=polyline_length, reverse=True)
    logger.debug(f"Loops: {len(loops)} accepted, {broken} spurious broken, {len(lines)} lines left")
    return loops
