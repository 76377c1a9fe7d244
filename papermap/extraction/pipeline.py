"""End-to-end extraction: photo → corrected page → line map.

Stages (data flows strictly downward):
    paper:     decode → scale to budget → detect rectangles → pick sheet → warp
    lines:     ink mask + white balance → thinning → tracing → simplification
               → loop extraction → joining
    output:    colour classification → normalised MapV1 → MapStore

Public API:
    decode_image(path_or_bytes) -> RGB uint8
    correct_perspective(image_rgb, image_path, cfg) -> corrected RGB
    extract_lines(corrected_rgb, cfg) -> (lines, loops, balanced_rgb)
    build_map(corrected_rgb, cfg, map_id) -> MapV1
    process_image(source, cfg, store, corrected=False) -> MapV1

process_image is the invocation boundary: the map id is allocated before any
work, papermap errors propagate unchanged, anything else is re-raised as
ExtractionFailedError, and the working directory is removed in every case.
A map is saved only after every stage succeeded.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from ..errors import ExtractionFailedError, NoRectanglesFoundError, PaperMapError, UnsupportedImageError
from ..storage import MapStore
from ..utils import fs
from ..utils.geometry import Point
from ..utils.logging_config import logging_context
from ..utils.profiler import StageTimings
from ..utils.validators import ExtractionConfigV1, MapV1
from .classify import to_line_entities
from .ink_mask import build_ink_mask
from .joiner import join_lines
from .loops import extract_loops
from .paper import (
    corrected_size,
    identify_paper_corners,
    order_clockwise,
    perspective_transform,
    scale_to_pixel_count,
    shift_corners,
)
from .rectangles import detect_rectangles
from .simplify import simplify_lines
from .skeleton_graph import trace_skeleton
from .thinning import thin_in_place

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes]


def decode_image(source: ImageSource) -> np.ndarray:
    """Decode an image file or encoded bytes into RGB uint8, shape (H, W, 3).

    Raises
    ------
    FileNotFoundError
        If ``source`` is a path that does not exist
    UnsupportedImageError
        If the data cannot be decoded as an image
    """
    if isinstance(source, (bytes, bytearray)):
        buf = np.frombuffer(source, dtype=np.uint8)
        bgr = cv2.imdecode(buf, cv2.IMREAD_COLOR) if buf.size else None
        label = f"{len(source)} bytes"
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")
        bgr = cv2.imread(str(path), cv2.IMREAD_COLOR)
        label = str(path)

    if bgr is None:
        raise UnsupportedImageError(f"Cannot decode image from {label}")
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def correct_perspective(image: np.ndarray, image_path: Union[str, Path], cfg: ExtractionConfigV1) -> np.ndarray:
    """Find the sheet of paper in ``image`` and warp it to a flat page.

    ``image_path`` must hold the same pixels as ``image``; the external
    detector reads it from disk.

    Raises
    ------
    NoRectanglesFoundError
        If the detector reports nothing usable
    NoPaperFoundError
        If no candidate lies inside the image
    """
    timings = StageTimings()
    with timings.stage("detect_rectangles"):
        rectangles = detect_rectangles(
            image_path, cfg.rectangle_detector.executable, cfg.rectangle_detector.timeout_s
        )
    if not rectangles:
        raise NoRectanglesFoundError(f"No rectangles found in {image_path}")

    corners = identify_paper_corners(
        image, rectangles, cfg.white_definition.saturation, cfg.white_definition.brightness
    )
    corners = order_clockwise(corners)
    if cfg.rectangle_shift > 0:
        corners = shift_corners(corners, cfg.rectangle_shift)

    width, height = corrected_size(corners, cfg.pixel_counts.transformed_image)
    with timings.stage("perspective_transform"):
        page = perspective_transform(image, corners, width, height)
    logger.debug(f"Stage timings: {timings}")
    logger.info(f"Corrected page {width}x{height} from corners {[tuple(round(c) for c in p) for p in corners]}")
    return page


def extract_lines(
    corrected: np.ndarray,
    cfg: ExtractionConfigV1,
    debug_dir: Optional[Path] = None,
) -> Tuple[List[List[Point]], List[List[Point]], np.ndarray]:
    """Run the line-graph stages on a corrected page.

    Returns
    -------
    lines : List[List[Point]]
        Joined open polylines in pixel coordinates
    loops : List[List[Point]]
        Closed polylines, longest first
    balanced : np.ndarray
        White-balanced page used for colour sampling
    """
    timings = StageTimings()

    with timings.stage("ink_mask"):
        mask, balanced = build_ink_mask(
            corrected,
            cfg.process_region_size,
            cfg.thresholds.saturation,
            cfg.thresholds.brightness,
        )
    if debug_dir is not None:
        fs.atomic_save_image(mask, debug_dir / "ink_mask.png")
        fs.atomic_save_image(balanced, debug_dir / "balanced.png")

    with timings.stage("thinning"):
        thin_in_place(mask)
    if debug_dir is not None:
        fs.atomic_save_image(mask, debug_dir / "skeleton.png")

    with timings.stage("trace"):
        lines = trace_skeleton(mask)
    traced = len(lines)

    with timings.stage("simplify"):
        simplify_lines(lines, cfg.line_reduction.initial_cut, cfg.line_reduction.angle_limit)

    with timings.stage("loops"):
        loops = extract_loops(lines, cfg.min_loop_size)

    with timings.stage("join"):
        join_lines(lines, cfg.min_line_length)

    logger.debug(f"Stage timings: {timings}")
    logger.info(f"Extracted {len(lines)} lines and {len(loops)} loops from {traced} traced segments")
    return lines, loops, balanced


def build_map(
    corrected: np.ndarray,
    cfg: ExtractionConfigV1,
    map_id: int,
    debug_dir: Optional[Path] = None,
) -> MapV1:
    """Corrected page → classified, normalised map."""
    lines, loops, balanced = extract_lines(corrected, cfg, debug_dir)
    entities = to_line_entities(lines, loops, balanced)
    H, W = corrected.shape[:2]
    return MapV1(id=map_id, ratio=W / H, lines=entities)


def process_image(
    source: ImageSource,
    cfg: ExtractionConfigV1,
    store: MapStore,
    corrected: bool = False,
    rng=None,
) -> MapV1:
    """Full invocation: allocate an id, extract the map and persist it.

    Parameters
    ----------
    source : ImageSource
        Image path or encoded image bytes
    cfg : ExtractionConfigV1
        Frozen configuration
    store : MapStore
        Id allocation, working directories and map persistence
    corrected : bool
        Input is already a flat page; skip paper detection and warping
    rng : random.Random, optional
        Source of randomness for janitor scheduling

    Returns
    -------
    MapV1
        The saved map

    Raises
    ------
    PaperMapError
        Domain failures (UnsupportedImageError, NoRectanglesFoundError, ...)
        unchanged; any other failure as ExtractionFailedError
    """
    map_id = store.allocate_id()
    store.maybe_schedule_cleanup(rng)

    with logging_context(map_id=map_id):
        try:
            with store.working_dir(map_id) as work:
                image = decode_image(source)
                logger.info(f"Processing {image.shape[1]}x{image.shape[0]} image")

                debug_dir = None
                if cfg.debug.save_intermediates:
                    debug_dir = fs.ensure_dir(Path(cfg.debug.out_dir) / str(map_id))

                if corrected:
                    page = image
                else:
                    image = scale_to_pixel_count(image, cfg.pixel_counts.initial_image)
                    image_path = work / "input.png"
                    fs.atomic_save_image(image, image_path)
                    page = correct_perspective(image, image_path, cfg)

                if debug_dir is not None:
                    fs.atomic_save_image(page, debug_dir / "corrected.png")

                map_v1 = build_map(page, cfg, map_id, debug_dir)
            store.save(map_v1)
        except PaperMapError as e:
            logger.error(f"Extraction failed: {type(e).__name__}: {e}")
            raise
        except Exception as e:
            logger.exception("Unexpected failure during extraction")
            raise ExtractionFailedError(f"Map {map_id}: {type(e).__name__}: {e}") from e

    return map_v1
