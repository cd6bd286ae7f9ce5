"""Engine Registry — Ordered collection of the search engines used for fan-out.

Adding a backend means registering one more ``SearchEngine`` instance; the
orchestrator iterates the registry and never names concrete engines.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from searchfuse.adapters.base.adapter import EngineHealth, SearchEngine

logger = logging.getLogger(__name__)


class EngineRegistry:
    """Registry of engine instances, kept in registration order.

    Registration order is the merge order of engine contributions and the
    precedence order for quick answers.

    Example:
        >>> registry = EngineRegistry()
        >>> registry.register(GoogleEngine())
        >>> registry.register(DuckDuckGoEngine())
        >>> await registry.initialize_all()
        >>> [engine.name for engine in registry]
        ['Google', 'DuckDuckGo']
    """

    def __init__(self) -> None:
        self._engines: dict[str, SearchEngine] = {}

    def register(self, engine: SearchEngine) -> None:
        """Register an engine instance under its own name."""
        if engine.name in self._engines:
            logger.warning("Overwriting existing engine registration: %s", engine.name)
        self._engines[engine.name] = engine
        logger.info("Registered engine: %s", engine.name)

    def __iter__(self) -> Iterator[SearchEngine]:
        return iter(list(self._engines.values()))

    def __len__(self) -> int:
        return len(self._engines)

    @property
    def names(self) -> list[str]:
        """Registered engine names in registration order."""
        return list(self._engines.keys())

    async def initialize_all(self) -> None:
        """Initialize every registered engine."""
        for engine in self._engines.values():
            await engine.initialize()

    async def health_check_all(self) -> dict[str, EngineHealth]:
        """Run health checks on all registered engines."""
        results: dict[str, EngineHealth] = {}
        for name, engine in self._engines.items():
            try:
                results[name] = await engine.health_check()
            except Exception as e:
                results[name] = EngineHealth(status="unhealthy", message=str(e))
        return results

    async def shutdown_all(self) -> None:
        """Gracefully shut down all registered engines."""
        for name, engine in self._engines.items():
            try:
                await engine.shutdown()
                logger.info("Shut down engine: %s", name)
            except Exception:
                logger.warning("Error shutting down engine: %s", name, exc_info=True)
