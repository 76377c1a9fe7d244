#!/usr/bin/env python3
"""Extract a line map from a photographed sheet of paper.

Runs the full pipeline on one image and stores the result:
    1. Allocates a map id in the store
    2. Detects the sheet (external rectangle detector) and flattens it,
       unless --corrected says the image already is a flat page
    3. Extracts lines and loops, classifies their colours
    4. Saves <maps_dir>/<id>.json

Usage:
    python scripts/extract_map.py photo.jpg
    python scripts/extract_map.py page.png --corrected --json
"""
import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from papermap.errors import PaperMapError, UnsupportedImageError
from papermap.extraction.pipeline import process_image
from papermap.storage import MapStore
from papermap.utils.logging_config import get_logger, install_excepthook, setup_logging
from papermap.utils.validators import ExtractionConfigV1, load_extraction_config

DEFAULT_CONFIG = Path("configs/extraction.v1.yaml")

logger = get_logger("extract_map")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for map extraction; returns the process exit code."""
    parser = argparse.ArgumentParser(
        description="Extract coloured lines and loops from a photographed map sheet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  map extracted and saved
  1  extraction failed (no paper found, internal error, bad config)
  2  input image missing or not decodable

Examples:
  # Photo of a sheet on a table (needs IdentifyRectangles on PATH)
  python scripts/extract_map.py photo.jpg

  # Already cropped and flat, print the map document
  python scripts/extract_map.py page.png --corrected --json

  # Custom config and store location
  python scripts/extract_map.py photo.jpg --config my.yaml --store /srv/maps
""",
    )
    parser.add_argument("image", type=Path, help="Input image file")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Extraction config YAML (default: {DEFAULT_CONFIG} if present, else built-in defaults)",
    )
    parser.add_argument("--store", type=Path, default=None, help="Override storage.maps_dir")
    parser.add_argument(
        "--corrected",
        action="store_true",
        help="Input is already a perspective-corrected page (skip paper detection)",
    )
    parser.add_argument("--log-level", default=None, help="Override logging.log_level")
    parser.add_argument("--json", action="store_true", help="Print the map document as JSON")

    args = parser.parse_args(argv)

    try:
        if args.config is not None:
            cfg = load_extraction_config(args.config)
        elif DEFAULT_CONFIG.exists():
            cfg = load_extraction_config(DEFAULT_CONFIG)
        else:
            cfg = ExtractionConfigV1()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_level=args.log_level or cfg.logging.log_level,
        log_file=cfg.logging.log_file,
        json=cfg.logging.json_format,
        color=cfg.logging.color,
        rotate_bytes=cfg.logging.rotate_bytes,
        quiet_libs=["PIL"],
        context={"app": "extract"},
    )
    install_excepthook()

    storage = cfg.storage
    if args.store is not None:
        storage = storage.model_copy(update={"maps_dir": str(args.store)})
    store = MapStore.from_config(storage)

    if not args.image.exists():
        logger.error(f"Image not found: {args.image}")
        return 2

    try:
        map_v1 = process_image(args.image, cfg, store, corrected=args.corrected)
    except UnsupportedImageError as e:
        logger.error(str(e))
        return 2
    except PaperMapError as e:
        logger.error(str(e))
        return 1

    if args.json:
        print(json.dumps(map_v1.to_dict()))
    else:
        loops = sum(1 for line in map_v1.lines if line.loop)
        print(f"Map {map_v1.id}: {len(map_v1.lines) - loops} lines, {loops} loops -> {store.path_for(map_v1.id)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
