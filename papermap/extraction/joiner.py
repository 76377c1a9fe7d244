"""Greedy end-to-end stitching of open polylines.

Polylines are visited longest first. For each one the longest chain that can
be grown from its last point is found by exhaustive depth-first search over
polylines sharing endpoints (a polyline appears at most once per chain; on
equal totals the first chain found wins). The chain is spliced onto the
polyline and its other members leave the working set. The polyline is then
reversed and grown again from its former first point. Finally polylines
shorter than the minimum length are dropped.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from ..utils.geometry import Point, polyline_length

logger = logging.getLogger(__name__)

Polyline = List[Point]
ChainLink = Tuple[Polyline, bool]  # (polyline, traversed reversed)


def longest_chain(lines: Sequence[Polyline], head: Polyline) -> List[ChainLink]:
    """Longest chain of polylines continuing from ``head[-1]``.

    Returns
    -------
    List[ChainLink]
        ``[(head, False), (next, reversed?), ...]`` where each link's first
        point (after the optional reversal) equals the previous link's last
        point
    """
    lengths = {id(line): polyline_length(line) for line in lines}
    at_point: Dict[Point, List[Polyline]] = defaultdict(list)
    for line in lines:
        at_point[line[0]].append(line)
        if line[-1] != line[0]:
            at_point[line[-1]].append(line)

    best: List[ChainLink] = [(head, False)]
    best_total = -1.0
    stack = [([(head, False)], head[-1], lengths[id(head)], frozenset([id(head)]))]
    while stack:
        chain, end, total, members = stack.pop()
        options = [line for line in at_point.get(end, ()) if id(line) not in members]
        if not options:
            if total > best_total:
                best, best_total = chain, total
            continue
        for line in reversed(options):
            flipped = line[0] != end
            far = line[0] if flipped else line[-1]
            stack.append((chain + [(line, flipped)], far, total + lengths[id(line)], members | {id(line)}))
    return best


def splice_chain(lines: List[Polyline], chain: Sequence[ChainLink]) -> None:
    """Append every chain link onto the head in place and drop the links from ``lines``."""
    head = chain[0][0]
    for line, flipped in chain[1:]:
        segment = line[::-1] if flipped else line
        head.extend(segment[1:])
    absorbed = {id(line) for line, _ in chain[1:]}
    if absorbed:
        lines[:] = [line for line in lines if id(line) not in absorbed]


def join_lines(lines: List[Polyline], min_line_length: float) -> None:
    """Stitch polylines sharing endpoints and drop short leftovers, in place.

    Parameters
    ----------
    lines : List[Polyline]
        Open polylines; the list and its elements are modified in place
    min_line_length : float
        Polylines with a total length below this (px) are discarded
    """
    before = len(lines)
    lines.sort(key=polyline_length, reverse=True)

    i = 0
    while i < len(lines):
        head = lines[i]
        splice_chain(lines, longest_chain(lines, head))
        head.reverse()
        splice_chain(lines, longest_chain(lines, head))
        # Absorbed polylines may have preceded the head
        i = next(k for k, line in enumerate(lines) if line is head) + 1

    lines[:] = [line for line in lines if polyline_length(line) >= min_line_length]
    logger.debug(f"Joined {before} polylines into {len(lines)} (min length {min_line_length}px)")
