"""Wrapper around the external rectangle detection program.

The detector is a separate executable invoked as ``<executable> <image path>``.
It may print progress lines; its last line is a JSON array of quadrilaterals,
each an array of four ``{"x": int, "y": int}`` objects in image pixels:

    [[{"x":12,"y":8},{"x":610,"y":15},{"x":598,"y":820},{"x":9,"y":801}], ...]

Only the last non-empty line is parsed. Non-JSON, an empty output, a missing
executable or a timeout all mean "no rectangles" (None); callers turn that into
NoRectanglesFoundError.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import InvalidParameterError

logger = logging.getLogger(__name__)

Quad = List[Tuple[int, int]]


def _parse_point(raw) -> Tuple[int, int]:
    if isinstance(raw, dict):
        x = raw.get("x", raw.get("X"))
        y = raw.get("y", raw.get("Y"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        x, y = raw
    else:
        raise InvalidParameterError(f"Malformed rectangle corner: {raw!r}")
    if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
        raise InvalidParameterError(f"Malformed rectangle corner: {raw!r}")
    return int(x), int(y)


def parse_rectangles(stdout: str) -> Optional[List[Quad]]:
    """Parse the detector's standard output.

    Returns
    -------
    Optional[List[Quad]]
        Candidate quadrilaterals as lists of (x, y), or None when the last
        line is missing or not JSON

    Raises
    ------
    InvalidParameterError
        If the last line is JSON but not an array of point arrays
    """
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        return None
    try:
        data = json.loads(lines[-1])
    except json.JSONDecodeError:
        logger.warning(f"Rectangle detector output is not JSON: {lines[-1][:80]!r}")
        return None

    if not isinstance(data, list) or not all(isinstance(q, list) for q in data):
        raise InvalidParameterError(f"Expected an array of rectangles, got {type(data).__name__}")
    return [[_parse_point(p) for p in quad] for quad in data]


def detect_rectangles(
    image_path: Union[str, Path],
    executable: str = "IdentifyRectangles",
    timeout_s: float = 30.0,
) -> Optional[List[Quad]]:
    """Run the rectangle detector on an image file.

    Parameters
    ----------
    image_path : Union[str, Path]
        Image file to analyse
    executable : str
        Program name (looked up on PATH) or path
    timeout_s : float
        Seconds before the detector is killed

    Returns
    -------
    Optional[List[Quad]]
        Candidate quadrilaterals, or None when nothing usable was reported
    """
    cmd = [executable, str(image_path)]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout_s, check=False)
    except FileNotFoundError:
        logger.error(f"Rectangle detector not found: {executable}")
        return None
    except subprocess.TimeoutExpired:
        logger.error(f"Rectangle detector timed out after {timeout_s}s on {image_path}")
        return None

    if result.returncode != 0:
        logger.warning(f"Rectangle detector exited with code {result.returncode}: {result.stderr.strip()[:200]}")

    rectangles = parse_rectangles(result.stdout)
    logger.debug(f"Rectangle detector reported {0 if rectangles is None else len(rectangles)} candidates")
    return rectangles
