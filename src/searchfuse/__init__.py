"""SearchFuse — Metasearch aggregation over scraped search engines."""

__version__ = "0.1.0"
