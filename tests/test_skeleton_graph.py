"""Tests for skeleton tracing.

Tests:
    - Neighbour lookup and mutual connectivity
    - Junk removal: redundant junction pixels and 4-connected corner steps
    - A straight line traces to one polyline, end to end
    - A ring started mid-line is spliced into one closed polyline
    - A T junction yields three branches sharing the junction pixel
    - Coverage: every skeleton pixel is on some polyline, consecutive points
      are 8-adjacent, and no pixel is the interior point of two polylines
    - Isolated pixels are dropped; the input mask is not modified

Run:
    pytest tests/test_skeleton_graph.py -v
"""

from collections import Counter

import cv2
import numpy as np
import pytest

from papermap.errors import InvalidParameterError
from papermap.extraction import skeleton_graph
from papermap.extraction.thinning import thin


def _mask(pixels, shape=(30, 30)):
    m = np.zeros(shape, dtype=bool)
    for x, y in pixels:
        m[y, x] = True
    return m


def _diamond():
    """8-connected diamond outline around (10, 10), 20 pixels."""
    pts = []
    for k in range(5):
        pts += [(10 + k, 5 + k), (15 - k, 10 + k), (10 - k, 15 - k), (5 + k, 10 - k)]
    return pts


def _assert_valid_trace(fg, lines):
    covered = {p for line in lines for p in line}
    expected = {(int(x), int(y)) for y, x in np.argwhere(fg)}
    assert covered == expected

    interior = Counter(p for line in lines for p in line[1:-1])
    assert all(count == 1 for count in interior.values())

    for line in lines:
        assert len(line) >= 2
        for a, b in zip(line[:-1], line[1:]):
            assert max(abs(a[0] - b[0]), abs(a[1] - b[1])) == 1


# ============================================================================
# HELPERS
# ============================================================================

def test_foreground_neighbours_order_and_claims():
    fg = _mask([(5, 5), (4, 4), (6, 5), (5, 6)])
    assert skeleton_graph.foreground_neighbours(fg, 5, 5) == [(4, 4), (5, 6), (6, 5)]

    claimed = np.zeros_like(fg)
    claimed[6, 5] = True
    assert skeleton_graph.foreground_neighbours(fg, 5, 5, claimed) == [(4, 4), (6, 5)]


def test_foreground_neighbours_at_border():
    fg = _mask([(0, 0), (1, 0), (0, 1)])
    assert skeleton_graph.foreground_neighbours(fg, 0, 0) == [(0, 1), (1, 0)]


def test_mutually_connected():
    assert skeleton_graph.mutually_connected([])
    assert skeleton_graph.mutually_connected([(0, 0), (1, 1), (2, 2)])
    # Connected only through the middle point, in any order
    assert skeleton_graph.mutually_connected([(0, 0), (2, 2), (1, 1)])
    assert not skeleton_graph.mutually_connected([(0, 0), (2, 0), (1, 1), (5, 5)])
    assert not skeleton_graph.mutually_connected([(0, 0), (2, 0)])


# ============================================================================
# JUNK REMOVAL
# ============================================================================

def test_junk_pixel_in_t_junction_removed():
    pixels = [(x, 10) for x in range(2, 21)] + [(11, y) for y in range(11, 21)]
    fg = _mask(pixels)
    removed = skeleton_graph.remove_junk_pixels(fg)
    assert removed == 1
    assert not fg[10, 11]
    # The vertical stroke now meets both halves diagonally
    assert fg[11, 11] and fg[10, 10] and fg[10, 12]


def test_corner_step_removed():
    """4-connected L corner next to a 3-neighbour pixel is cleared."""
    pixels = [(x, 5) for x in range(5, 16)] + [(5, y) for y in range(6, 16)]
    fg = _mask(pixels)
    removed = skeleton_graph.remove_junk_pixels(fg)
    assert removed == 1
    assert not fg[5, 5]
    assert fg[5, 6] and fg[6, 5]


def test_plain_lines_untouched():
    fg = _mask([(x, 10) for x in range(2, 25)] + [(i, i) for i in range(14, 25)])
    before = fg.copy()
    assert skeleton_graph.remove_junk_pixels(fg) == 0
    assert np.array_equal(fg, before)


# ============================================================================
# TRACING
# ============================================================================

def test_straight_line():
    fg = _mask([(x, 5) for x in range(2, 21)])
    lines = skeleton_graph.trace_skeleton(fg)
    assert lines == [[(x, 5) for x in range(2, 21)]]


def test_ring_started_mid_line_is_spliced():
    fg = _mask(_diamond())
    lines = skeleton_graph.trace_skeleton(fg)

    assert len(lines) == 1
    ring = lines[0]
    assert ring[0] == ring[-1]
    assert len(ring) == 21
    assert set(ring) == set(_diamond())
    _assert_valid_trace(fg, lines)


def test_t_junction_branches():
    pixels = [(x, 10) for x in range(2, 21)] + [(11, y) for y in range(11, 21)]
    tracer = skeleton_graph.SkeletonTracer(_mask(pixels))
    lines = tracer.trace()

    assert tracer.junk_removed == 1
    assert len(lines) == 3
    assert lines[0] == [(x, 10) for x in range(2, 11)] + [(11, 11)]
    assert lines[1] == [(11, y) for y in range(11, 21)]
    assert lines[2] == [(11, 11)] + [(x, 10) for x in range(12, 21)]
    _assert_valid_trace(tracer.fg, lines)


def test_thinned_shapes_are_covered():
    img = np.zeros((80, 80), dtype=np.uint8)
    cv2.rectangle(img, (10, 10), (60, 50), 255, thickness=3)
    cv2.line(img, (10, 70), (70, 20), 255, thickness=3)
    skeleton = thin(img > 0)

    tracer = skeleton_graph.SkeletonTracer(skeleton)
    lines = tracer.trace()
    assert lines
    _assert_valid_trace(tracer.fg, lines)


def test_isolated_pixels_dropped():
    fg = _mask([(3, 3), (20, 20)])
    assert skeleton_graph.trace_skeleton(fg) == []


def test_input_not_modified():
    pixels = [(x, 10) for x in range(2, 21)] + [(11, y) for y in range(11, 21)]
    fg = _mask(pixels)
    before = fg.copy()
    skeleton_graph.trace_skeleton(fg)
    assert np.array_equal(fg, before)


def test_rejects_non_2d():
    with pytest.raises(InvalidParameterError):
        skeleton_graph.trace_skeleton(np.zeros((5, 5, 3), dtype=bool))
