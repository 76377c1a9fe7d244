"""Zhang–Suen thinning of a boolean ink mask.

Each pass runs two half-steps. A half-step flags every interior foreground
pixel P1 whose 8-neighbourhood

    P9 P2 P3
    P8 P1 P4
    P7 P6 P5

satisfies
    - 2 <= B <= 6, with B the number of foreground neighbours
    - A == 1, with A the number of 0→1 transitions around P2, P3, ..., P9, P2
    - step 1: P2·P4·P6 == 0 and P4·P6·P8 == 0
    - step 2: P2·P4·P8 == 0 and P2·P6·P8 == 0

and then clears all flagged pixels at once. Thinning stops after the first full
pass that clears nothing, so the result is a fixed point (thinning it again is
a no-op). Pixels on the image border are never evaluated.
"""

import logging

import cv2
import numpy as np

from ..errors import InvalidParameterError

logger = logging.getLogger(__name__)

# Ring of all 8 neighbours, centre excluded
_RING_KERNEL = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.float32)


def _removable(m: np.ndarray, step: int) -> np.ndarray:
    """Flags for the interior of uint8 mask ``m`` (shape (H-2, W-2))."""
    p1 = m[1:-1, 1:-1]
    p2 = m[:-2, 1:-1]
    p3 = m[:-2, 2:]
    p4 = m[1:-1, 2:]
    p5 = m[2:, 2:]
    p6 = m[2:, 1:-1]
    p7 = m[2:, :-2]
    p8 = m[1:-1, :-2]
    p9 = m[:-2, :-2]

    B = cv2.filter2D(m, cv2.CV_32F, _RING_KERNEL)[1:-1, 1:-1]

    ring = (p2, p3, p4, p5, p6, p7, p8, p9, p2)
    A = np.zeros(p1.shape, dtype=np.int32)
    for a, b in zip(ring[:-1], ring[1:]):
        A += (a == 0) & (b == 1)

    if step == 0:
        corners = ((p2 & p4 & p6) == 0) & ((p4 & p6 & p8) == 0)
    else:
        corners = ((p2 & p4 & p8) == 0) & ((p2 & p6 & p8) == 0)

    return (p1 == 1) & (B >= 2) & (B <= 6) & (A == 1) & corners


def thin_in_place(mask: np.ndarray) -> int:
    """Thin a boolean mask to one-pixel-wide curves, in place.

    Parameters
    ----------
    mask : np.ndarray
        Ink mask, shape (H, W), dtype bool; modified in place

    Returns
    -------
    int
        Number of full passes run (including the final pass that cleared nothing)

    Raises
    ------
    InvalidParameterError
        If ``mask`` is not a 2D boolean array
    """
    if mask.ndim != 2 or mask.dtype != bool:
        raise InvalidParameterError(f"Expected 2D bool mask, got {mask.dtype} {mask.shape}")

    H, W = mask.shape
    if H < 3 or W < 3:
        return 0

    interior = mask[1:-1, 1:-1]
    passes = 0
    while True:
        passes += 1
        cleared = 0
        for step in (0, 1):
            # Evaluate against the mask as it was before this half-step
            flags = _removable(mask.astype(np.uint8), step)
            n = int(flags.sum())
            if n:
                interior[flags] = False
                cleared += n
        if cleared == 0:
            break

    logger.debug(f"Thinning converged after {passes} passes, {int(mask.sum())} skeleton pixels")
    return passes


def thin(mask: np.ndarray) -> np.ndarray:
    """Return a thinned copy of ``mask``."""
    out = np.array(mask, dtype=bool, copy=True)
    thin_in_place(out)
    return out
