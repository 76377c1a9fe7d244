"""Ink mask and white balance from per-tile paper colour statistics.

The corrected page is cut into square tiles. Each tile's paper colour is
estimated as the lower-middle median of its pixels' hue, saturation and
brightness; pixels that deviate from it by more than a tolerance in saturation
or brightness are ink. The same medians drive a per-tile white balance whose
output is later sampled by the colour classifier.

Pipeline:
    1. HSB of the whole image (one vectorised conversion)
    2. Tile grid: max(dim // size, 1) tiles per axis, the last absorbs the rest
    3. Per tile: PaperColor medians → ink test and white-balance gains

Both outputs come from one set of medians and are written to fresh arrays; the
input image is never modified.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..errors import InvalidParameterError
from ..utils import color

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaperColor:
    """Median hue (deg), saturation and brightness of one tile."""
    hue: float
    saturation: float
    brightness: float

    def to_rgb(self) -> Tuple[int, int, int]:
        return color.hsb_to_rgb(self.hue, self.saturation, self.brightness)


def tile_bounds(length: int, size: int) -> List[Tuple[int, int]]:
    """Half-open [start, stop) ranges covering ``length`` in tiles of ``size``.

    Examples
    --------
    >>> tile_bounds(450, 200)
    [(0, 200), (200, 450)]
    >>> tile_bounds(150, 200)
    [(0, 150)]
    """
    if size < 1:
        raise InvalidParameterError(f"Tile size must be >= 1, got {size}")
    count = max(length // size, 1)
    bounds = [(i * size, (i + 1) * size) for i in range(count)]
    bounds[-1] = (bounds[-1][0], length)
    return bounds


def paper_color(hue: np.ndarray, saturation: np.ndarray, brightness: np.ndarray) -> PaperColor:
    """Estimate a tile's paper colour from its HSB planes.

    Raises
    ------
    InvalidParameterError
        If a median saturation or brightness lies outside [0, 1]
    """
    med_s = color.check_unit_interval("Median saturation", color.median_lower(saturation))
    med_b = color.check_unit_interval("Median brightness", color.median_lower(brightness))
    return PaperColor(hue=color.median_lower(hue), saturation=med_s, brightness=med_b)


def white_balance_gains(paper: PaperColor) -> np.ndarray:
    """Per-channel gains mapping the paper colour to pure white.

    A zero channel is treated as 1 so the gain stays finite (255x).
    """
    rgb = np.maximum(np.asarray(paper.to_rgb(), dtype=np.float64), 1.0)
    return 255.0 / rgb


def build_ink_mask(
    image: np.ndarray,
    region_size: int,
    saturation_threshold: float = 0.1,
    brightness_threshold: float = 0.1,
) -> Tuple[np.ndarray, np.ndarray]:
    """Threshold ink against local paper colour and white-balance the image.

    Parameters
    ----------
    image : np.ndarray
        RGB page, shape (H, W, 3), dtype uint8
    region_size : int
        Tile edge length in pixels
    saturation_threshold : float
        Saturation deviation above which a pixel is ink, in [0, 1]
    brightness_threshold : float
        Brightness deviation above which a pixel is ink, in [0, 1]

    Returns
    -------
    mask : np.ndarray
        Ink mask, shape (H, W), dtype bool (True = ink)
    balanced : np.ndarray
        White-balanced copy of ``image``, shape (H, W, 3), dtype uint8

    Raises
    ------
    InvalidParameterError
        If the image is not a non-empty (H, W, 3) array or a threshold lies
        outside [0, 1]
    """
    image = np.asarray(image)
    if image.ndim != 3 or image.shape[2] != 3 or image.shape[0] == 0 or image.shape[1] == 0:
        raise InvalidParameterError(f"Expected non-empty (H, W, 3) RGB image, got shape {image.shape}")
    color.check_unit_interval("Saturation threshold", saturation_threshold)
    color.check_unit_interval("Brightness threshold", brightness_threshold)

    H, W = image.shape[:2]
    hue, sat, bright = color.rgb_to_hsb(image)

    mask = np.zeros((H, W), dtype=bool)
    balanced = np.empty((H, W, 3), dtype=np.uint8)

    rows = tile_bounds(H, region_size)
    cols = tile_bounds(W, region_size)
    for y0, y1 in rows:
        for x0, x1 in cols:
            tile = (slice(y0, y1), slice(x0, x1))
            paper = paper_color(hue[tile], sat[tile], bright[tile])

            mask[tile] = (
                (np.abs(sat[tile] - paper.saturation) > saturation_threshold)
                | (np.abs(bright[tile] - paper.brightness) > brightness_threshold)
            )

            gains = white_balance_gains(paper)
            scaled = (image[tile].astype(np.float64) * gains).astype(np.int64)
            balanced[tile] = np.minimum(scaled, 255).astype(np.uint8)

    logger.debug(
        f"Ink mask: {len(rows)}x{len(cols)} tiles of {region_size}px, "
        f"{int(mask.sum())} ink pixels ({100.0 * mask.mean():.1f}%)"
    )
    return mask, balanced
