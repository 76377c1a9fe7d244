"""Tests for configuration and map schemas.

Tests:
    - Stock configuration defaults and the shipped YAML agree
    - Overrides, range checks and schema tag validation
    - Frozen models reject mutation
    - Storage directories must differ
    - Map documents: integer colour tokens, dict round trip, point ranges

Run:
    pytest tests/test_validators.py -v
"""

import math
from pathlib import Path

import pytest
from pydantic import ValidationError

from papermap.utils import validators
from papermap.utils.validators import Color, ExtractionConfigV1, MapV1


@pytest.fixture(scope="module")
def project_root():
    """Project root directory."""
    return Path(__file__).parent.parent


def test_defaults():
    cfg = ExtractionConfigV1()
    assert cfg.schema_version == "extraction.v1"
    assert cfg.process_region_size == 200
    assert cfg.thresholds.saturation == 0.1
    assert cfg.thresholds.brightness == 0.1
    assert cfg.white_definition.saturation == 0.3
    assert cfg.white_definition.brightness == 0.5
    assert cfg.line_reduction.initial_cut == 3
    assert cfg.line_reduction.angle_limit == 2.7
    assert cfg.min_loop_size == 10.0
    assert cfg.min_line_length == 20.0
    assert cfg.pixel_counts.initial_image == 1_000_000
    assert cfg.pixel_counts.transformed_image == 1_400_000
    assert cfg.rectangle_shift == 0.0
    assert cfg.logging.log_level == "INFO"


def test_shipped_config_matches_defaults(project_root):
    cfg = validators.load_extraction_config(project_root / "configs" / "extraction.v1.yaml")
    assert cfg == ExtractionConfigV1()


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        validators.load_extraction_config(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("schema: extraction.v2\n", encoding="utf-8")
    with pytest.raises(ValueError, match="validation failed"):
        validators.load_extraction_config(bad)


def test_partial_override(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("min_line_length: 5\nthresholds:\n  brightness: 0.2\n", encoding="utf-8")
    cfg = validators.load_extraction_config(path)
    assert cfg.min_line_length == 5.0
    assert cfg.thresholds.brightness == 0.2
    assert cfg.thresholds.saturation == 0.1


@pytest.mark.parametrize(
    "override",
    [
        {"thresholds": {"saturation": 1.5}},
        {"process_region_size": 0},
        {"line_reduction": {"initial_cut": 0}},
        {"line_reduction": {"angle_limit": 4.0}},
        {"rectangle_shift": 0.3},
        {"logging": {"log_level": "LOUD"}},
        {"rectangle_detector": {"executable": "  "}},
    ],
)
def test_out_of_range_rejected(override):
    with pytest.raises(ValidationError):
        ExtractionConfigV1(**override)


def test_log_level_normalised():
    assert validators.LoggingConfig(log_level="debug").log_level == "DEBUG"


def test_angle_limit_upper_bound_is_pi():
    assert validators.LineReduction(angle_limit=math.pi).angle_limit == math.pi


def test_frozen():
    cfg = ExtractionConfigV1()
    with pytest.raises(ValidationError):
        cfg.min_loop_size = 3.0


def test_storage_dirs_must_differ(tmp_path):
    with pytest.raises(ValidationError):
        validators.StorageConfig(maps_dir=str(tmp_path / "x"), work_dir=str(tmp_path / "x"))
    validators.StorageConfig(maps_dir=str(tmp_path / "maps"), work_dir=str(tmp_path / "work"))


def test_color_tokens():
    assert [c.value for c in Color] == [0, 1, 2, 3, 4, 5, 6]
    assert Color.BLACK == 0 and Color.YELLOW == 6


def test_map_to_dict_and_back():
    map_v1 = MapV1(
        id=4,
        ratio=0.75,
        lines=[
            validators.LineV1(color=Color.RED, loop=False, points=[{"x": 0.1, "y": 0.2}, {"x": 0.3, "y": 0.4}]),
            validators.LineV1(color=Color.BLACK, loop=True, points=[{"x": 0.0, "y": 1.0}]),
        ],
    )
    doc = map_v1.to_dict()
    assert doc["id"] == 4
    assert doc["lines"][0]["color"] == 1
    assert type(doc["lines"][0]["color"]) is int
    assert doc["lines"][1]["loop"] is True
    assert doc["lines"][0]["points"][1] == {"x": 0.3, "y": 0.4}

    assert MapV1.from_dict(doc) == map_v1


def test_map_rejects_bad_values():
    with pytest.raises(ValidationError):
        validators.LinePointV1(x=1.2, y=0.5)
    with pytest.raises(ValidationError):
        MapV1(id=0, ratio=1.0)
    with pytest.raises(ValidationError):
        MapV1(id=1, ratio=0.0)
    with pytest.raises(ValidationError):
        MapV1.from_dict({"id": 1, "ratio": 1.0, "lines": [{"color": 9, "points": []}]})
