"""Paper detection and perspective correction (upstream of line extraction).

Provides:
    - scale_to_pixel_count: resize to a pixel budget, keeping the aspect ratio
    - identify_paper_corners: pick the sheet among detector quadrilaterals
    - order_clockwise: TL, TR, BR, BL ordering of a quadrilateral
    - shift_corners: pull corners toward the centroid (crop the sheet edge)
    - corrected_size: output size of the corrected page
    - perspective_transform: bilinear corner mapping resampled with cv2.remap

Corners are (x, y) pixel pairs in the image frame (top-left origin, +Y down).
"""

import logging
import math
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from ..errors import InvalidParameterError, NoPaperFoundError
from ..utils import color

logger = logging.getLogger(__name__)

Corner = Tuple[float, float]


def scale_to_pixel_count(image: np.ndarray, target_pixels: int) -> np.ndarray:
    """Resize so that width·height ≈ ``target_pixels``.

    Parameters
    ----------
    image : np.ndarray
        Image, shape (H, W) or (H, W, C)
    target_pixels : int
        Pixel budget (> 0)

    Returns
    -------
    np.ndarray
        Resized image (INTER_AREA when shrinking, INTER_LINEAR when growing)
    """
    if target_pixels <= 0:
        raise InvalidParameterError(f"Target pixel count must be > 0, got {target_pixels}")
    H, W = image.shape[:2]
    if H == 0 or W == 0:
        raise InvalidParameterError(f"Cannot scale an empty image of shape {image.shape}")

    factor = math.sqrt(target_pixels / float(H * W))
    new_w = max(1, int(round(W * factor)))
    new_h = max(1, int(round(H * factor)))
    if (new_w, new_h) == (W, H):
        return image.copy()
    interpolation = cv2.INTER_AREA if factor < 1.0 else cv2.INTER_LINEAR
    return cv2.resize(image, (new_w, new_h), interpolation=interpolation)


def approximate_area(quad: Sequence[Corner]) -> int:
    """|p0p1| · |p0p3| with both side lengths truncated to integers."""
    side_a = int(math.hypot(quad[0][0] - quad[1][0], quad[0][1] - quad[1][1]))
    side_b = int(math.hypot(quad[0][0] - quad[3][0], quad[0][1] - quad[3][1]))
    return side_a * side_b


def _is_white(image: np.ndarray, corner: Corner, max_saturation: float, min_brightness: float) -> bool:
    x, y = int(corner[0]), int(corner[1])
    _, sat, bright = color.rgb_to_hsb(image[y, x])
    return float(sat) < max_saturation and float(bright) > min_brightness


def identify_paper_corners(
    image: np.ndarray,
    rectangles: Sequence[Sequence[Corner]],
    white_saturation: float = 0.3,
    white_brightness: float = 0.5,
) -> List[Corner]:
    """Choose the quadrilateral most likely to be the sheet of paper.

    The largest candidate whose four corners all sit on paper-white pixels wins;
    if none qualifies, the largest in-bounds candidate is returned.

    Raises
    ------
    InvalidParameterError
        If ``rectangles`` is empty or a candidate does not have exactly 4 corners
    NoPaperFoundError
        If no candidate lies fully inside the image
    """
    if len(rectangles) == 0:
        raise InvalidParameterError("No candidate rectangles given")
    bad = [i for i, quad in enumerate(rectangles) if len(quad) != 4]
    if bad:
        raise InvalidParameterError(f"Rectangles {bad} do not have exactly 4 corners")

    H, W = image.shape[:2]
    inside = [
        [tuple(p) for p in quad]
        for quad in rectangles
        if all(0 <= p[0] < W and 0 <= p[1] < H for p in quad)
    ]
    if not inside:
        raise NoPaperFoundError(f"None of {len(rectangles)} rectangles lies inside the {W}x{H} image")

    ranked = sorted(inside, key=approximate_area, reverse=True)
    for quad in ranked:
        if all(_is_white(image, p, white_saturation, white_brightness) for p in quad):
            logger.debug(f"Paper: white-cornered rectangle of area {approximate_area(quad)}")
            return quad

    logger.info(f"No rectangle has white corners, using the largest of {len(ranked)}")
    return ranked[0]


def relative_angle(center: Corner, point: Corner) -> float:
    """Monotonic angle proxy in [-2, 2] of ``point`` seen from ``center`` (y axis up).

    sin(θ) for points to the right, mirrored to (1, 2] / [-2, -1) to the left.
    """
    x = point[0] - center[0]
    y = -(point[1] - center[1])
    hypotenuse = math.hypot(x, y)
    if hypotenuse == 0:
        raise InvalidParameterError(f"Duplicate corner {point}")
    rel = y / hypotenuse
    if x >= 0:
        return rel
    return 2.0 - rel if y >= 0 else -2.0 - rel


def order_clockwise(corners: Sequence[Corner]) -> List[Corner]:
    """Reorder a convex quadrilateral as top-left, top-right, bottom-right, bottom-left.

    ``corners`` must already run around the quadrilateral in either direction.
    """
    if len(corners) != 4:
        raise InvalidParameterError(f"Expected 4 corners, got {len(corners)}")
    sums = [p[0] + p[1] for p in corners]
    tl = sums.index(min(sums))
    before = corners[(tl - 1) % 4]
    after = corners[(tl + 1) % 4]
    step = -1 if relative_angle(corners[tl], before) >= relative_angle(corners[tl], after) else 1
    return [tuple(corners[(tl + k * step) % 4]) for k in range(4)]


def shift_corners(corners: Sequence[Corner], fraction: float) -> List[Corner]:
    """Move every corner ``fraction`` of the way toward the centroid."""
    if not (0.0 <= fraction < 1.0):
        raise InvalidParameterError(f"Shift fraction must be in [0, 1), got {fraction}")
    cx = sum(p[0] for p in corners) / len(corners)
    cy = sum(p[1] for p in corners) / len(corners)
    return [(p[0] + (cx - p[0]) * fraction, p[1] + (cy - p[1]) * fraction) for p in corners]


def corrected_size(corners: Sequence[Corner], target_pixels: int) -> Tuple[int, int]:
    """Output (width, height) from average opposite side lengths, scaled to the budget."""
    tl, tr, br, bl = order_clockwise(corners)
    width = (math.dist(tl, tr) + math.dist(bl, br)) / 2.0
    height = (math.dist(tl, bl) + math.dist(tr, br)) / 2.0
    if width <= 0 or height <= 0:
        raise InvalidParameterError(f"Degenerate paper quadrilateral {list(corners)}")
    scale = math.sqrt(target_pixels / (width * height))
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def perspective_transform(image: np.ndarray, corners: Sequence[Corner], width: int, height: int) -> np.ndarray:
    """Resample the quadrilateral ``corners`` of ``image`` into a width×height page.

    Output pixel (x, y) maps to the bilinear blend of the ordered corners at
    (x / width, y / height); colours are interpolated bilinearly with
    replicated borders.

    Raises
    ------
    InvalidParameterError
        If there are not exactly 4 corners or one lies outside the image
    """
    if len(corners) != 4:
        raise InvalidParameterError(f"Expected 4 corners, got {len(corners)}")
    H, W = image.shape[:2]
    if not all(0 <= p[0] < W and 0 <= p[1] < H for p in corners):
        raise InvalidParameterError(f"Corners {list(corners)} not inside the {W}x{H} image")
    if width < 1 or height < 1:
        raise InvalidParameterError(f"Output size must be positive, got {width}x{height}")

    tl, tr, br, bl = (np.asarray(p, dtype=np.float64) for p in order_clockwise(corners))
    rx, ry = np.meshgrid(np.arange(width) / width, np.arange(height) / height)
    rx = rx[..., None]
    ry = ry[..., None]
    top = tl + rx * (tr - tl)
    bottom = bl + rx * (br - bl)
    src = top + ry * (bottom - top)

    map_x = src[..., 0].astype(np.float32)
    map_y = src[..., 1].astype(np.float32)
    return cv2.remap(image, map_x, map_y, cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)
