"""Tests for the extract_map command line entrypoint.

Tests:
    - A corrected page is extracted, saved and printed as JSON (exit 0)
    - Missing or undecodable images exit with 2
    - An invalid config exits with 1

Run:
    pytest tests/test_extract_map_cli.py -v
"""

import json
import logging
import sys

import cv2
import numpy as np
import pytest

from papermap.utils import logging_config
from scripts import extract_map


@pytest.fixture
def isolated_cli(monkeypatch):
    """Undo the global logging setup and excepthook installed by main()."""
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, logging_config.ContextFormatter):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging_config.pop_context()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "extraction.yaml"
    path.write_text(
        "schema: extraction.v1\n"
        "storage:\n"
        f"  maps_dir: {tmp_path / 'maps'}\n"
        f"  work_dir: {tmp_path / 'work'}\n"
        "  cleanup_every: 1000000\n"
        "logging:\n"
        "  log_level: WARNING\n"
        "  color: false\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def page_file(tmp_path):
    img = np.full((200, 200, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (50, 50), (150, 150), (0, 0, 0), thickness=3)
    path = tmp_path / "page.png"
    assert cv2.imwrite(str(path), img)
    return path


def test_corrected_page_json(isolated_cli, config_file, page_file, tmp_path, capsys):
    code = extract_map.main([str(page_file), "--config", str(config_file), "--corrected", "--json"])

    assert code == 0
    doc = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert doc["id"] == 1
    assert len(doc["lines"]) == 1
    assert doc["lines"][0]["loop"] is True
    assert doc["lines"][0]["color"] == 0
    assert (tmp_path / "maps" / "1.json").is_file()


def test_store_override(isolated_cli, config_file, page_file, tmp_path, capsys):
    other = tmp_path / "elsewhere"
    code = extract_map.main([str(page_file), "--config", str(config_file), "--corrected", "--store", str(other)])
    assert code == 0
    assert (other / "1.json").is_file()
    assert "1 loops" in capsys.readouterr().out


def test_missing_image(isolated_cli, config_file, tmp_path):
    assert extract_map.main([str(tmp_path / "nope.png"), "--config", str(config_file)]) == 2


def test_undecodable_image(isolated_cli, config_file, tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"definitely not a png")
    assert extract_map.main([str(bad), "--config", str(config_file), "--corrected"]) == 2


def test_invalid_config(isolated_cli, tmp_path, page_file):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("schema: extraction.v9\n", encoding="utf-8")
    assert extract_map.main([str(page_file), "--config", str(cfg)]) == 1
