"""Tests for polyline simplification.

Tests:
    - Decimation keeps every Nth point and both endpoints, drops end stubs
    - Angle cut removes straight runs and keeps real corners
    - Duplicate middle points are dropped
    - Endpoints always survive; short polylines are untouched
    - simplify_lines works in place on the same list objects

Run:
    pytest tests/test_simplify.py -v
"""

import math

import pytest

from papermap.errors import InvalidParameterError
from papermap.extraction import simplify


def _l_shape():
    return [(x, 0) for x in range(11)] + [(10, y) for y in range(1, 11)]


def test_decimate_keeps_every_nth():
    pts = [(i, 0) for i in range(10)]
    # Index 8 sits in the last N/2 positions and is dropped
    assert simplify.decimate(pts, 4) == [(0, 0), (4, 0), (9, 0)]
    assert simplify.decimate(pts, 3) == [(0, 0), (3, 0), (6, 0), (9, 0)]
    assert simplify.decimate(pts, 1) == pts


def test_decimate_long_line():
    pts = [(i, 0) for i in range(30)]
    kept = simplify.decimate(pts, 3)
    assert kept[0] == (0, 0) and kept[-1] == (29, 0)
    assert kept[-2] == (27, 0)
    assert len(kept) == 11


def test_decimate_short_and_invalid():
    assert simplify.decimate([(0, 0), (1, 1)], 5) == [(0, 0), (1, 1)]
    with pytest.raises(InvalidParameterError):
        simplify.decimate([(0, 0), (1, 1), (2, 2)], 0)


def test_angle_cut_straight_line():
    pts = [(i, 0) for i in range(20)]
    simplify.angle_cut(pts, 2.7)
    assert pts == [(0, 0), (19, 0)]


def test_angle_cut_keeps_right_angle():
    pts = _l_shape()
    simplify.angle_cut(pts, 2.7)
    assert pts == [(0, 0), (10, 0), (10, 10)]


def test_angle_cut_duplicate_point():
    pts = [(0, 0), (0, 0), (5, 5)]
    simplify.angle_cut(pts, 2.7)
    assert pts == [(0, 0), (5, 5)]


def test_angle_cut_limit_pi_keeps_everything_not_collinear():
    pts = [(0, 0), (5, 1), (10, 0)]
    simplify.angle_cut(pts, math.pi)
    assert pts == [(0, 0), (5, 1), (10, 0)]


def test_simplify_lines_in_place():
    straight = [(i, 5) for i in range(30)]
    corner = _l_shape()
    short = [(0, 0), (1, 1)]
    lines = [straight, corner, short]

    simplify.simplify_lines(lines, 3, 2.7)

    assert lines[0] is straight
    assert straight == [(0, 5), (29, 5)]
    assert corner[0] == (0, 0) and corner[-1] == (10, 10)
    # The corner region keeps at least one vertex
    assert len(corner) >= 3
    assert short == [(0, 0), (1, 1)]


def test_simplify_never_grows_and_keeps_endpoints():
    wave = [(i, int(round(10 * math.sin(i / 5.0)))) for i in range(80)]
    before = list(wave)
    simplify.simplify_lines([wave], 3, 2.7)
    assert len(wave) <= len(before)
    assert wave[0] == before[0] and wave[-1] == before[-1]
