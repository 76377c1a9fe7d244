"""papermap: photographed hand-drawn sheets to vector line maps.

This package turns a photo of a marked-up sheet of paper into a structured
description of the lines and loops drawn on it, with a colour class per line.

Architecture layers (strict one-way dependency):
    scripts/ → papermap/{extraction/,storage.py} → papermap/utils/

Key invariants:
    - Pixel coordinates are (x, y) with +Y down until the final normalisation
    - Output coordinates live in the unit square [0,1]×[0,1]
    - YAML-only configs, validated by pydantic, read-only after loading
    - Images are RGB uint8 arrays of shape (H, W, 3) unless explicitly noted
"""

__version__ = "1.0.0"
