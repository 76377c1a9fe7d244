"""File IO for configs, map documents, the id counter and debug images.

Map documents and the id counter are read by other invocations while they
are being replaced. Every write therefore goes to a hidden sibling file, is
synced, and is renamed over the target; a reader sees the old document or
the new one, never a prefix. Sibling names carry the process and thread id
because several extractions may write into one maps directory at once.

Usage:
    from papermap.utils import fs
    fs.atomic_json_dump(map_v1.to_dict(), maps_dir / "17.json")
    fs.atomic_save_image(mask, debug_dir / "ink_mask.png")
"""

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(path: PathLike) -> Path:
    """Create ``path`` (and parents) if missing and return it as a Path."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _staging_path(target: Path) -> Path:
    # Keeps the real suffix last so PIL still infers the image format
    return target.with_name(f".{target.stem}.{os.getpid()}-{threading.get_ident()}.part{target.suffix}")


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Replace ``path`` with ``data`` in one rename.

    Raises
    ------
    OSError
        If writing or renaming fails; the staging file is removed first
    """
    path = Path(path)
    ensure_dir(path.parent)
    staging = _staging_path(path)
    try:
        with open(staging, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(staging, path)
    except OSError:
        staging.unlink(missing_ok=True)
        raise


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_json_dump(obj: Any, path: PathLike) -> None:
    """Write ``obj`` as compact JSON (no whitespace between tokens)."""
    atomic_write_text(path, json.dumps(obj, separators=(",", ":")))


def load_json(path: PathLike) -> Any:
    """Parse a JSON document.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    ValueError
        If the content is not JSON
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"JSON file not found: {path}") from None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e


def load_yaml(path: PathLike) -> Dict[str, Any]:
    """Read a YAML mapping with ``yaml.safe_load``.

    An empty file reads as ``{}``.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    ValueError
        If the file is not YAML or its top level is not a mapping
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"{path} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def atomic_save_image(img: np.ndarray, path: PathLike) -> None:
    """Save an RGB/grayscale array or a bool ink mask through PIL.

    Masks are written as black ink (True) on white paper; other dtypes are
    clipped to uint8.
    """
    path = Path(path)
    ensure_dir(path.parent)
    if img.dtype == bool:
        img = np.where(img, 0, 255).astype(np.uint8)
    elif img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)

    staging = _staging_path(path)
    try:
        Image.fromarray(img).save(staging)
        os.replace(staging, path)
    except OSError:
        staging.unlink(missing_ok=True)
        raise
