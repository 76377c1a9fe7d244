"""YAML schema validation, config loading and the Map output schema.

Provides centralized validation using pydantic:
    - Extraction schema (extraction.v1.yaml): tile size, ink thresholds, line
      reduction, loop/line size limits, pixel budgets, detector, storage, debug
    - Map schema (map document JSON): id, page ratio, coloured lines and loops

All modules must use these validators to load configs for fail-fast error detection
with actionable messages (offending keys, expected ranges). Every model is frozen:
a loaded config is shared read-only by concurrent invocations.

Units:
    - Tile size, loop size, line length: pixels
    - Thresholds, white definition: [0.0, 1.0] on the HSB scale
    - Angle limit: radians
    - Map points: normalised [0.0, 1.0] (x / width, y / height)

Usage:
    from papermap.utils import validators

    cfg = validators.load_extraction_config("configs/extraction.v1.yaml")
    doc = map_v1.to_dict()
    map_v1 = validators.MapV1.from_dict(doc)
"""

import math
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# EXTRACTION SCHEMA V1
# ============================================================================

class Thresholds(BaseModel):
    """Allowed deviation from the tile's paper colour before a pixel counts as ink."""
    model_config = ConfigDict(frozen=True)

    saturation: float = Field(0.1, ge=0.0, le=1.0, description="Saturation tolerance")
    brightness: float = Field(0.1, ge=0.0, le=1.0, description="Brightness tolerance")


class WhiteDefinition(BaseModel):
    """A pixel is paper-white when saturation < s and brightness > b."""
    model_config = ConfigDict(frozen=True)

    saturation: float = Field(0.3, ge=0.0, le=1.0, description="Maximum saturation of white")
    brightness: float = Field(0.5, ge=0.0, le=1.0, description="Minimum brightness of white")


class LineReduction(BaseModel):
    """Polyline simplification parameters."""
    model_config = ConfigDict(frozen=True)

    initial_cut: int = Field(3, ge=1, description="Keep every Nth point during decimation")
    angle_limit: float = Field(2.7, gt=0.0, le=math.pi,
                               description="Drop a middle point whose angle exceeds this (rad)")


class PixelCounts(BaseModel):
    """Pixel budgets for the raw upload and the perspective-corrected page."""
    model_config = ConfigDict(frozen=True)

    initial_image: int = Field(1_000_000, ge=1, description="Target pixels after upload scaling")
    transformed_image: int = Field(1_400_000, ge=1, description="Target pixels of the corrected page")


class RectangleDetectorConfig(BaseModel):
    """External rectangle detection program."""
    model_config = ConfigDict(frozen=True)

    executable: str = Field("IdentifyRectangles", description="Program name or path")
    timeout_s: float = Field(30.0, gt=0.0, description="Subprocess timeout (s)")

    @field_validator('executable')
    @classmethod
    def validate_executable(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rectangle detector executable must not be empty")
        return v


class StorageConfig(BaseModel):
    """Map storage and per-invocation working directories."""
    model_config = ConfigDict(frozen=True)

    maps_dir: str = Field("data/maps", description="Directory of <id>.json map documents")
    work_dir: str = Field("data/work", description="Parent of per-invocation working dirs")
    stale_after_s: float = Field(120.0, gt=0.0, description="Age after which a working dir is abandoned")
    cleanup_every: int = Field(20, ge=1, description="Run the janitor on ~1 in N invocations")

    @model_validator(mode='after')
    def validate_distinct_dirs(self):
        # The janitor deletes whole subtrees of work_dir
        if Path(self.maps_dir).resolve() == Path(self.work_dir).resolve():
            raise ValueError(f"maps_dir and work_dir must differ, both are '{self.maps_dir}'")
        return self


class DebugConfig(BaseModel):
    """Debug image dumping."""
    model_config = ConfigDict(frozen=True)

    save_intermediates: bool = Field(False, description="Write corrected/mask/skeleton PNGs")
    out_dir: str = Field("outputs/debug", description="Debug output root")


class LoggingConfig(BaseModel):
    """Arguments forwarded to setup_logging."""
    model_config = ConfigDict(frozen=True)

    log_level: str = Field("INFO", description="Root log level")
    log_file: Optional[str] = Field(None, description="Optional log file path")
    json_format: bool = Field(False, description="JSON lines in the log file")
    color: bool = Field(True, description="ANSI colours on the console")
    rotate_bytes: Optional[int] = Field(None, gt=0, description="Roll the log file over at this size")

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}, got '{v}'")
        return v.upper()


class ExtractionConfigV1(BaseModel):
    """Extraction pipeline configuration schema v1.

    Every field has a default, so ``ExtractionConfigV1()`` is the stock
    configuration and a YAML file only needs to list overrides.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field("extraction.v1", alias="schema", description="Schema version")
    process_region_size: int = Field(200, ge=1, description="Tile edge length for ink thresholding (px)")
    thresholds: Thresholds = Field(default_factory=Thresholds)
    white_definition: WhiteDefinition = Field(default_factory=WhiteDefinition)
    line_reduction: LineReduction = Field(default_factory=LineReduction)
    min_loop_size: float = Field(10.0, ge=0.0, description="Loops within this box are candidates for breaking (px)")
    min_line_length: float = Field(20.0, ge=0.0, description="Open lines shorter than this are dropped (px)")
    pixel_counts: PixelCounts = Field(default_factory=PixelCounts)
    rectangle_shift: float = Field(0.0, ge=0.0, lt=0.25,
                                   description="Pull paper corners toward the centre by this fraction")
    rectangle_detector: RectangleDetectorConfig = Field(default_factory=RectangleDetectorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "extraction.v1":
            raise ValueError(f"Expected schema 'extraction.v1', got '{v}'")
        return v


# ============================================================================
# MAP SCHEMA V1
# ============================================================================

class Color(IntEnum):
    """Line colour classes; the integer value is the serialised token."""
    BLACK = 0
    RED = 1
    GREEN = 2
    BLUE = 3
    CYAN = 4
    MAGENTA = 5
    YELLOW = 6


class LinePointV1(BaseModel):
    """Normalised point (x / width, y / height)."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(..., ge=0.0, le=1.0)
    y: float = Field(..., ge=0.0, le=1.0)


class LineV1(BaseModel):
    """A classified polyline; closed loops do not repeat their first point."""
    model_config = ConfigDict(frozen=True)

    color: Color
    loop: bool = False
    points: List[LinePointV1]


class MapV1(BaseModel):
    """Result of one successful pipeline run."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Map id allocated by the store")
    ratio: float = Field(..., gt=0.0, description="Page width / height")
    lines: List[LineV1] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready document with integer colour tokens."""
        return {
            "id": self.id,
            "ratio": self.ratio,
            "lines": [
                {
                    "color": int(line.color),
                    "loop": line.loop,
                    "points": [{"x": p.x, "y": p.y} for p in line.points],
                }
                for line in self.lines
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MapV1":
        return cls.model_validate(data)


# ============================================================================
# PUBLIC API
# ============================================================================

def load_extraction_config(path: Union[str, Path]) -> ExtractionConfigV1:
    """Load and validate extraction config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to extraction.v1.yaml file

    Returns
    -------
    ExtractionConfigV1
        Validated, frozen configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Extraction config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return ExtractionConfigV1(**data)
    except Exception as e:
        raise ValueError(f"Extraction config validation failed at {path}: {e}") from e
