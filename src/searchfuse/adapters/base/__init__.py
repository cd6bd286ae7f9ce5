"""Base engine interface — Abstract classes for search backend scrapers."""

from searchfuse.adapters.base.adapter import SearchEngine
from searchfuse.adapters.base.registry import EngineRegistry

__all__ = ["EngineRegistry", "SearchEngine"]
