"""Wall-clock timings for the extraction stages.

One StageTimings collects the durations of the stages a single map goes
through (ink mask, thinning, trace, ...) and renders them as one compact
summary line, logged at DEBUG by the pipeline:

    ink_mask=0.041s thinning=0.380s trace=0.022s simplify=0.001s

A stage that raises is still recorded.
"""

import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator


@contextmanager
def timer(name: str, sink: Callable[[str, float], None]) -> Iterator[None]:
    """Time the ``with`` block and hand ``(name, seconds)`` to ``sink``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        sink(name, time.perf_counter() - start)


class StageTimings:
    """Per-map stage durations in seconds, in execution order.

    Examples
    --------
    >>> timings = StageTimings()
    >>> with timings.stage("thinning"):
    ...     thin_in_place(mask)
    >>> logger.debug(f"Stage timings: {timings}")
    """

    def __init__(self):
        self.seconds: Dict[str, float] = {}

    def _record(self, name: str, elapsed: float) -> None:
        # Repeated stage names add up
        self.seconds[name] = self.seconds.get(name, 0.0) + elapsed

    def stage(self, name: str):
        return timer(name, self._record)

    def total(self) -> float:
        return sum(self.seconds.values())

    def __str__(self) -> str:
        return " ".join(f"{name}={secs:.3f}s" for name, secs in self.seconds.items())
