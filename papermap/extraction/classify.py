"""Colour classification of finished polylines and unit-square normalisation.

A polyline's colour is read from the white-balanced page at every point:
    - median saturation < 0.3 or median brightness < 0.3 → Black
    - otherwise the median hue picks one of twelve 30° buckets, paired into
      Red, Yellow, Green, Cyan, Blue, Magenta (bucket 11 wraps back to Red)

Medians are lower-middle elements, as everywhere else in the pipeline.
Points are then divided by the page width and height.
"""

import logging
from typing import List, Sequence

import numpy as np

from ..errors import InvalidParameterError, SampleOutOfBoundsError
from ..utils import color
from ..utils.geometry import Point
from ..utils.validators import Color, LinePointV1, LineV1

logger = logging.getLogger(__name__)

BLACK_SATURATION = 0.3
BLACK_BRIGHTNESS = 0.3

HUE_BUCKETS = (
    Color.RED, Color.YELLOW, Color.YELLOW, Color.GREEN, Color.GREEN, Color.CYAN,
    Color.CYAN, Color.BLUE, Color.BLUE, Color.MAGENTA, Color.MAGENTA, Color.RED,
)


def sample_pixels(image: np.ndarray, points: Sequence[Point]) -> np.ndarray:
    """RGB values at the rounded pixel positions of ``points``, shape (N, 3).

    Raises
    ------
    SampleOutOfBoundsError
        If any rounded position lies outside the image
    InvalidParameterError
        If ``points`` is empty or not an (N, 2) sequence
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[0] == 0 or pts.shape[1] != 2:
        raise InvalidParameterError(f"Expected non-empty (N, 2) points, got shape {pts.shape}")

    H, W = image.shape[:2]
    xs = np.rint(pts[:, 0]).astype(np.int64)
    ys = np.rint(pts[:, 1]).astype(np.int64)
    outside = (xs < 0) | (xs >= W) | (ys < 0) | (ys >= H)
    if outside.any():
        k = int(np.argmax(outside))
        raise SampleOutOfBoundsError(
            f"Point ({pts[k, 0]}, {pts[k, 1]}) lies outside the {W}x{H} image"
        )
    return image[ys, xs]


def hue_to_color(hue: float) -> Color:
    """Map a hue in degrees to its chromatic colour class."""
    return HUE_BUCKETS[int(np.floor(hue / 30.0)) % 12]


def classify_color(image: np.ndarray, points: Sequence[Point]) -> Color:
    """Colour class of a polyline drawn on ``image``."""
    hue, sat, bright = color.rgb_to_hsb(sample_pixels(image, points))
    if color.median_lower(sat) < BLACK_SATURATION or color.median_lower(bright) < BLACK_BRIGHTNESS:
        return Color.BLACK
    return hue_to_color(color.median_lower(hue))


def normalise_points(points: Sequence[Point], width: int, height: int) -> List[LinePointV1]:
    """Divide x by ``width`` and y by ``height``."""
    return [LinePointV1(x=float(x) / width, y=float(y) / height) for x, y in points]


def to_line_entities(lines: Sequence[Sequence[Point]], loops: Sequence[Sequence[Point]],
                     image: np.ndarray) -> List[LineV1]:
    """Classify open lines then loops into output entities (lines first).

    Parameters
    ----------
    lines : Sequence[Sequence[Point]]
        Open polylines in pixel coordinates
    loops : Sequence[Sequence[Point]]
        Closed polylines in pixel coordinates (closing point not repeated)
    image : np.ndarray
        White-balanced page, shape (H, W, 3), dtype uint8

    Returns
    -------
    List[LineV1]
        One entity per polyline with normalised points
    """
    H, W = image.shape[:2]
    entities = []
    for is_loop, group in ((False, lines), (True, loops)):
        for points in group:
            entities.append(LineV1(
                color=classify_color(image, points),
                loop=is_loop,
                points=normalise_points(points, W, H),
            ))
    logger.debug(f"Classified {len(lines)} lines and {len(loops)} loops")
    return entities
