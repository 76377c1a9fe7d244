"""Tests for polyline geometry helpers.

Tests:
    - polyline_length and polyline_bbox
    - corner_angle for straight, right-angle and degenerate corners
    - is_compact with the strict per-axis limit

Run:
    pytest tests/test_geometry.py -v
"""

import math

import numpy as np
import pytest

from papermap.utils import geometry


def test_polyline_length():
    assert geometry.polyline_length([(0, 0), (3, 4)]) == pytest.approx(5.0)
    assert geometry.polyline_length([(0, 0), (3, 4), (3, 10)]) == pytest.approx(11.0)
    assert geometry.polyline_length([(1, 1)]) == 0.0
    assert geometry.polyline_length([]) == 0.0


def test_polyline_length_accepts_arrays():
    pts = np.array([[0.0, 0.0], [10.0, 0.0], [10.0, 10.0]])
    assert geometry.polyline_length(pts) == pytest.approx(20.0)


def test_polyline_bbox():
    assert geometry.polyline_bbox([(3, 7), (-1, 2), (5, 4)]) == (-1.0, 2.0, 5.0, 7.0)
    assert geometry.polyline_bbox([]) == (0.0, 0.0, 0.0, 0.0)


def test_corner_angle_straight_and_right():
    assert geometry.corner_angle((0, 0), (1, 0), (2, 0)) == pytest.approx(math.pi)
    assert geometry.corner_angle((0, 0), (5, 0), (5, 5)) == pytest.approx(math.pi / 2)
    # Switch-back
    assert geometry.corner_angle((0, 0), (5, 0), (0, 0)) == pytest.approx(0.0, abs=1e-7)


def test_corner_angle_degenerate_is_nan():
    assert math.isnan(geometry.corner_angle((2, 2), (2, 2), (5, 5)))
    assert math.isnan(geometry.corner_angle((0, 0), (5, 5), (5, 5)))


def test_is_compact():
    square = [(0, 0), (5, 0), (5, 5), (0, 5)]
    assert geometry.is_compact(square, 10)
    # Limit is strict
    assert not geometry.is_compact(square, 5)
    assert not geometry.is_compact([(0, 0), (15, 0), (30, 0)], 10)
    assert not geometry.is_compact([], 10)
