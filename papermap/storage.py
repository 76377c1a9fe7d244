"""Map persistence, id allocation and per-invocation working directories.

Layout on disk:
    <maps_dir>/next_id.txt       next id to hand out (first id is 1)
    <maps_dir>/<id>.json         one map document per successful run
    <work_dir>/<id>/             scratch space of a running invocation

Concurrency:
    - allocate_id() reads, increments and atomically rewrites the counter
      under a process-wide lock, so concurrent invocations get unique ids
    - map documents are written atomically (tmp → fsync → rename)
    - the janitor only removes working directories older than stale_after_s,
      never the fresh directory of an active invocation

Usage:
    store = MapStore.from_config(cfg.storage)
    map_id = store.allocate_id()
    with store.working_dir(map_id) as work:
        ...
    store.save(map_v1)
"""

import logging
import random
import shutil
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .utils import fs
from .utils.validators import MapV1, StorageConfig

logger = logging.getLogger(__name__)

COUNTER_FILE = "next_id.txt"


class MapStore:
    """Directory-backed map storage.

    Parameters
    ----------
    maps_dir : Union[str, Path]
        Directory holding map documents and the id counter
    work_dir : Union[str, Path]
        Parent directory of per-invocation working directories
    stale_after_s : float
        Age (s) after which a working directory counts as abandoned
    cleanup_every : int
        The janitor runs on roughly one in ``cleanup_every`` invocations
    """

    # One lock per process: every store instance shares the counter semantics
    _id_lock = threading.Lock()

    def __init__(
        self,
        maps_dir: Union[str, Path],
        work_dir: Union[str, Path],
        stale_after_s: float = 120.0,
        cleanup_every: int = 20,
    ):
        self.maps_dir = fs.ensure_dir(maps_dir)
        self.work_dir = fs.ensure_dir(work_dir)
        self.stale_after_s = stale_after_s
        self.cleanup_every = cleanup_every

    @classmethod
    def from_config(cls, cfg: StorageConfig) -> "MapStore":
        return cls(cfg.maps_dir, cfg.work_dir, cfg.stale_after_s, cfg.cleanup_every)

    # ------------------------------------------------------------------
    # Ids and documents
    # ------------------------------------------------------------------

    def allocate_id(self) -> int:
        """Reserve the next map id (1, 2, 3, ...)."""
        counter = self.maps_dir / COUNTER_FILE
        with self._id_lock:
            if counter.exists():
                text = counter.read_text(encoding="utf-8").strip()
                try:
                    next_id = int(text)
                except ValueError as e:
                    raise ValueError(f"Corrupt id counter {counter}: {text!r}") from e
            else:
                next_id = 1
            fs.atomic_write_text(counter, str(next_id + 1))
        logger.debug(f"Allocated map id {next_id}")
        return next_id

    def path_for(self, map_id: int) -> Path:
        return self.maps_dir / f"{map_id}.json"

    def save(self, map_v1: MapV1) -> Path:
        """Write a map document atomically; returns its path."""
        path = self.path_for(map_v1.id)
        fs.atomic_json_dump(map_v1.to_dict(), path)
        logger.info(f"Saved map {map_v1.id} with {len(map_v1.lines)} lines to {path}")
        return path

    def load(self, map_id: int) -> MapV1:
        """Load one map.

        Raises
        ------
        FileNotFoundError
            If no map with this id exists
        """
        path = self.path_for(map_id)
        if not path.exists():
            raise FileNotFoundError(f"Map {map_id} not found in {self.maps_dir}")
        return MapV1.from_dict(fs.load_json(path))

    def load_range(self, start: int, count: int) -> List[MapV1]:
        """Maps with ids start..start+count-1 that exist, ascending."""
        return [self.load(i) for i in range(start, start + count) if self.path_for(i).exists()]

    def list_ids(self) -> List[int]:
        return sorted(int(p.stem) for p in self.maps_dir.glob("*.json") if p.stem.isdigit())

    # ------------------------------------------------------------------
    # Working directories
    # ------------------------------------------------------------------

    @contextmanager
    def working_dir(self, map_id: int) -> Iterator[Path]:
        """Scratch directory for one invocation, removed on exit."""
        path = fs.ensure_dir(self.work_dir / str(map_id))
        try:
            yield path
        finally:
            self._remove_tree(path)

    def cleanup_stale(self, now: Optional[float] = None) -> int:
        """Remove working directories older than ``stale_after_s``; returns the count."""
        now = time.time() if now is None else now
        removed = 0
        for child in self.work_dir.iterdir():
            if not child.is_dir():
                continue
            try:
                age = now - child.stat().st_mtime
            except FileNotFoundError:
                continue
            if age > self.stale_after_s and self._remove_tree(child):
                removed += 1
        if removed:
            logger.info(f"Removed {removed} stale working directories from {self.work_dir}")
        return removed

    def maybe_schedule_cleanup(self, rng: Optional[random.Random] = None) -> Optional[threading.Thread]:
        """Start the janitor in a daemon thread with probability 1/cleanup_every."""
        draw = (rng or random).random()
        if draw >= 1.0 / self.cleanup_every:
            return None
        thread = threading.Thread(target=self._run_cleanup, name="papermap-janitor", daemon=True)
        thread.start()
        return thread

    def _run_cleanup(self) -> None:
        try:
            self.cleanup_stale()
        except OSError:
            logger.exception(f"Working directory cleanup failed in {self.work_dir}")

    @staticmethod
    def _remove_tree(path: Path) -> bool:
        try:
            shutil.rmtree(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not remove working directory {path}: {e}")
            return False
