"""Tests for Zhang–Suen thinning.

Tests:
    - Thick bars thin to a one-pixel centre line
    - One-pixel lines and isolated end points are already thin
    - Idempotence: thinning a thinned mask changes nothing
    - Border pixels are never cleared
    - The result is a subset of the input
    - Input validation

Run:
    pytest tests/test_thinning.py -v
"""

import cv2
import numpy as np
import pytest

from papermap.errors import InvalidParameterError
from papermap.extraction import thinning


@pytest.fixture
def thick_ring():
    """Square outline, 5 px thick, on a 100x100 mask."""
    img = np.zeros((100, 100), dtype=np.uint8)
    cv2.rectangle(img, (20, 20), (80, 80), 255, thickness=5)
    return img > 0


def test_thick_bar_becomes_one_pixel():
    mask = np.zeros((40, 60), dtype=bool)
    mask[17:24, 5:55] = True
    skeleton = thinning.thin(mask)

    assert skeleton.any()
    # Away from the bar ends each column keeps a single pixel
    for x in range(15, 45):
        assert skeleton[:, x].sum() == 1
        assert 17 <= int(np.argmax(skeleton[:, x])) <= 23


def test_one_pixel_lines_unchanged():
    horizontal = np.zeros((30, 30), dtype=bool)
    horizontal[10, 3:27] = True
    assert np.array_equal(thinning.thin(horizontal), horizontal)

    diagonal = np.zeros((30, 30), dtype=bool)
    for i in range(5, 25):
        diagonal[i, i] = True
    assert np.array_equal(thinning.thin(diagonal), diagonal)


def test_idempotent(thick_ring):
    once = thinning.thin(thick_ring)
    twice = thinning.thin(once)
    assert np.array_equal(once, twice)
    assert thinning.thin_in_place(twice) == 1


def test_subset_of_input(thick_ring):
    skeleton = thinning.thin(thick_ring)
    assert skeleton.any()
    assert not (skeleton & ~thick_ring).any()
    assert skeleton.sum() < thick_ring.sum()


def test_border_pixels_untouched():
    mask = np.ones((12, 12), dtype=bool)
    thinning.thin_in_place(mask)
    assert mask[0, :].all() and mask[-1, :].all()
    assert mask[:, 0].all() and mask[:, -1].all()


def test_in_place_and_pass_count():
    mask = np.zeros((20, 20), dtype=bool)
    mask[5:10, 3:17] = True
    passes = thinning.thin_in_place(mask)
    assert passes >= 2
    assert mask.sum() < 5 * 14


def test_tiny_masks_are_left_alone():
    mask = np.ones((2, 5), dtype=bool)
    assert thinning.thin_in_place(mask) == 0
    assert mask.all()


def test_invalid_mask():
    with pytest.raises(InvalidParameterError):
        thinning.thin_in_place(np.zeros((10, 10), dtype=np.uint8))
    with pytest.raises(InvalidParameterError):
        thinning.thin_in_place(np.zeros((10, 10, 3), dtype=bool))
