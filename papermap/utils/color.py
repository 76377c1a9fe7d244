"""Hue/saturation/brightness (HSB) helpers on RGB uint8 pixels.

Provides:
    - rgb_to_hsb: vectorised RGB → (hue°, saturation, brightness)
    - hsb_to_rgb: single HSB triple → RGB integers (clamped to [0, 255])
    - median_lower: sort-and-pick median (lower-middle element, no averaging)
    - check_unit_interval: contract check for values that must lie in [0, 1]

Conventions:
    - Hue in degrees [0, 360); grey pixels (max == min) have hue 0
    - Saturation = 1 - min/max (0 for black), brightness = max/255
    - Inputs are RGB (not BGR); callers convert after cv2.imread

Used by:
    - Ink mask builder: per-tile paper colour and white balance gains
    - Colour classifier: median hue/saturation/brightness along a line
    - Paper selection: "is this corner white?" test
"""

from typing import Tuple

import numpy as np

from ..errors import InvalidParameterError


def rgb_to_hsb(rgb: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Convert RGB pixels to hue, saturation and brightness.

    Parameters
    ----------
    rgb : np.ndarray
        RGB pixels, shape (..., 3), any integer or float dtype in [0, 255]

    Returns
    -------
    hue : np.ndarray
        Hue in degrees [0, 360), shape (...)
    saturation : np.ndarray
        Saturation in [0, 1], shape (...)
    brightness : np.ndarray
        Brightness in [0, 1], shape (...)
    """
    rgb = np.asarray(rgb)
    if rgb.shape[-1] != 3:
        raise InvalidParameterError(f"Expected (..., 3) RGB array, got shape {rgb.shape}")

    rgb = rgb.astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    c_max = rgb.max(axis=-1)
    c_min = rgb.min(axis=-1)
    delta = c_max - c_min

    brightness = c_max / 255.0
    with np.errstate(divide="ignore", invalid="ignore"):
        saturation = np.where(c_max > 0, 1.0 - c_min / c_max, 0.0)

        safe_delta = np.where(delta > 0, delta, 1.0)
        hue = np.where(
            r == c_max,
            (g - b) / safe_delta,
            np.where(g == c_max, 2.0 + (b - r) / safe_delta, 4.0 + (r - g) / safe_delta),
        )
    hue = hue * 60.0
    hue = np.where(hue < 0, hue + 360.0, hue)
    hue = np.where(delta > 0, hue, 0.0)

    return hue, saturation, brightness


def hsb_to_rgb(hue: float, saturation: float, brightness: float) -> Tuple[int, int, int]:
    """Convert one HSB triple back to RGB.

    Parameters
    ----------
    hue : float
        Hue in degrees (wrapped into [0, 360))
    saturation : float
        Saturation in [0, 1]
    brightness : float
        Brightness in [0, 1]

    Returns
    -------
    Tuple[int, int, int]
        (r, g, b), each truncated and clamped to [0, 255]
    """
    hue = float(hue) % 360.0

    if brightness <= 0:
        red = green = blue = 0.0
    elif saturation <= 0:
        red = green = blue = brightness
    else:
        hf = hue / 60.0
        i = int(np.floor(hf))
        f = hf - i
        pv = brightness * (1 - saturation)
        qv = brightness * (1 - saturation * f)
        tv = brightness * (1 - saturation * (1 - f))
        sector = {
            0: (brightness, tv, pv),
            1: (qv, brightness, pv),
            2: (pv, brightness, tv),
            3: (pv, qv, brightness),
            4: (tv, pv, brightness),
            5: (brightness, pv, qv),
            6: (brightness, tv, pv),
        }
        red, green, blue = sector.get(i, (brightness, brightness, brightness))

    def clamp(v: float) -> int:
        return max(0, min(255, int(v * 255.0)))

    return clamp(red), clamp(green), clamp(blue)


def median_lower(values: np.ndarray) -> float:
    """Median without averaging: the lower-middle element after sorting.

    Parameters
    ----------
    values : np.ndarray
        Sample values, any shape (flattened)

    Returns
    -------
    float
        ``sorted(values)[(n - 1) // 2]``

    Raises
    ------
    InvalidParameterError
        If ``values`` is empty
    """
    flat = np.sort(np.asarray(values, dtype=np.float64).ravel())
    if flat.size == 0:
        raise InvalidParameterError("Cannot take the median of an empty sample")
    return float(flat[(flat.size - 1) // 2])


def check_unit_interval(name: str, value: float) -> float:
    """Reject values outside [0, 1]; never clamps."""
    if not (0.0 <= value <= 1.0):
        raise InvalidParameterError(f"{name} must be between 0 and 1, got {value}")
    return value
