"""FastAPI application factory and lifecycle management."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from searchfuse import __version__
from searchfuse.adapters.base.adapter import SearchEngine
from searchfuse.adapters.base.registry import EngineRegistry
from searchfuse.adapters.duckduckgo.adapter import DuckDuckGoEngine
from searchfuse.adapters.google.adapter import GoogleEngine
from searchfuse.api.deps import set_orchestrator
from searchfuse.api.router import router as api_router
from searchfuse.cache.manager import CacheManager
from searchfuse.config.settings import Settings, canonical_engine_name
from searchfuse.core.orchestrator import SearchOrchestrator
from searchfuse.observability.logging import setup_logging

DEFAULT_CONFIG_FILE = "searchfuse-config.yaml"
CONFIG_ENV_VAR = "SEARCHFUSE_CONFIG"

logger = logging.getLogger(__name__)


def load_settings() -> Settings:
    """Settings from ``$SEARCHFUSE_CONFIG``, ``./searchfuse-config.yaml`` or the environment."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Settings.from_yaml(explicit)
    yaml_path = Path(DEFAULT_CONFIG_FILE)
    if yaml_path.exists():
        logger.info("Loading configuration from %s", yaml_path)
        return Settings.from_yaml(yaml_path)
    return Settings()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from the config file or environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = load_settings()

    setup_logging(settings.observability)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle (startup/shutdown)."""
        logger.info("Starting SearchFuse v%s", __version__)

        engines = build_engines(settings)
        cache = CacheManager(settings.cache)
        orchestrator = SearchOrchestrator.from_settings(settings, engines, cache)

        # A cache that cannot connect is fatal: uvicorn aborts startup.
        await orchestrator.initialize()

        set_orchestrator(orchestrator)
        app.state.settings = settings
        app.state.orchestrator = orchestrator

        logger.info("SearchFuse is ready to serve requests on port %d", settings.server.port)
        yield

        logger.info("Shutting down SearchFuse...")
        await orchestrator.shutdown()
        set_orchestrator(None)
        logger.info("SearchFuse shutdown complete")

    app = FastAPI(
        title="SearchFuse",
        description="Metasearch service: concurrent fan-out to scraped engines, heuristic ranking and caching.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api")

    # ── Prebuilt frontend ─────────────────────────────────────────────────
    static_dir = settings.server.static_dir
    if static_dir:
        if Path(static_dir).is_dir():
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        else:
            logger.warning("Static directory '%s' not found, frontend not served", static_dir)

    return app


# ── Engine construction ──

# Maps configured engine names to their classes
ENGINE_CLASSES: dict[str, type[SearchEngine]] = {
    "Google": GoogleEngine,
    "DuckDuckGo": DuckDuckGoEngine,
}


def build_engines(settings: Settings) -> EngineRegistry:
    """Instantiate every enabled engine in ``settings.search.engines``, in config order.

    Names match the built-in classes case-insensitively; unknown names are
    logged and skipped.

    Raises:
        ConfigurationError: If an engine rejects its ``extra`` options.
    """
    registry = EngineRegistry()
    search = settings.search
    for name, cfg in search.engines.items():
        if not cfg.enabled:
            logger.info("Engine '%s' is disabled, skipping", name)
            continue

        engine_class = ENGINE_CLASSES.get(canonical_engine_name(name))
        if engine_class is None:
            logger.warning("Unknown engine '%s', no built-in class found. Available: %s", name, list(ENGINE_CLASSES))
            continue

        registry.register(
            engine_class(
                user_agents=search.user_agents,
                accept_language=search.accept_language,
                connect_timeout=search.connect_timeout,
                timeout=search.timeout,
                **cfg.extra,
            )
        )
    return registry
