"""In-process search metrics.

Counters and timings the orchestrator records into. The API exposes a
snapshot through the health endpoint; exporting to an external system is
left to whoever owns the process.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)


class SearchMetrics:
    """Thread-safe counters for cache and engine activity."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._engine_time: dict[str, float] = defaultdict(float)
        self._engine_results: dict[str, int] = defaultdict(int)

    def _incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def record_cache_hit(self) -> None:
        self._incr("cache_hits_total")

    def record_cache_miss(self) -> None:
        self._incr("cache_misses_total")

    def record_search_result(self, engine: str, success: bool) -> None:
        outcome = "success" if success else "failure"
        self._incr(f"search_total:{engine}:{outcome}")

    def record_rate_limited(self, engine: str) -> None:
        self._incr(f"rate_limited_total:{engine}")

    def record_search_time(self, engine: str, seconds: float) -> None:
        with self._lock:
            self._engine_time[engine] += seconds
        logger.debug("Engine %s responded in %.3fs", engine, seconds)

    def record_results_count(self, engine: str, count: int) -> None:
        with self._lock:
            self._engine_results[engine] += count

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict[str, Any]:
        """Copy of all metrics, safe to serialize."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "engine_time_seconds": {k: round(v, 3) for k, v in self._engine_time.items()},
                "engine_results": dict(self._engine_results),
            }
