"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (SEARCHFUSE_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
]


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3000, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")
    static_dir: str | None = Field(
        default=None,
        description="Directory with a prebuilt frontend, served at / when set and present",
    )


class CacheSettings(BaseModel):
    """Result cache configuration."""

    backend: str = Field(default="redis", description="Cache backend: redis, memory")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    ttl_seconds: int = Field(default=300, gt=0, description="TTL applied to cached result sets")
    max_connections: int = Field(default=50, gt=0, description="Redis connection pool size")
    pool_timeout: float = Field(
        default=2.0,
        gt=0,
        description="Seconds to wait for a free pooled connection before treating the call as a miss",
    )
    socket_timeout: float = Field(default=2.0, gt=0, description="Per-command Redis socket timeout")
    flush_on_startup: bool = Field(
        default=True,
        description="Flush the cache namespace at startup to drop payloads from a previous deployment",
    )

    @field_validator("backend")
    @classmethod
    def _check_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in {"redis", "memory"}:
            raise ValueError(f"Unsupported cache backend: {v!r}")
        return v


class EngineConfig(BaseModel):
    """Configuration for a single search engine."""

    enabled: bool = Field(default=True, description="Whether this engine takes part in fan-out")
    rate_limit_capacity: int = Field(default=5, gt=0, description="Token bucket capacity")
    rate_limit_per_second: float = Field(default=5.0, gt=0, description="Token refill rate per second")
    extra: dict[str, Any] = Field(default_factory=dict, description="Engine-specific constructor options")


BUILTIN_ENGINES: tuple[str, ...] = ("Google", "DuckDuckGo")


def _default_engines() -> dict[str, EngineConfig]:
    return {name: EngineConfig() for name in BUILTIN_ENGINES}


def canonical_engine_name(name: str) -> str:
    """Built-in engine name matching *name* case-insensitively, else *name* unchanged.

    Environment variables reach the settings lowercased
    (``SEARCHFUSE_SEARCH__ENGINES__DUCKDUCKGO__ENABLED`` gives ``duckduckgo``).
    """
    for builtin in BUILTIN_ENGINES:
        if builtin.lower() == name.lower():
            return builtin
    return name


class SearchSettings(BaseModel):
    """Outbound search behaviour."""

    engines: dict[str, EngineConfig] = Field(
        default_factory=_default_engines,
        description="Engine configurations keyed by engine name",
    )
    connect_timeout: float = Field(default=10.0, gt=0, description="Outbound connect timeout in seconds")
    timeout: float = Field(default=30.0, gt=0, description="Outbound total request timeout in seconds")
    accept_language: str = Field(default="fr-FR,fr;q=0.9", description="Accept-Language header value")
    user_agents: list[str] = Field(
        default_factory=lambda: list(DEFAULT_USER_AGENTS),
        min_length=1,
        description="User-Agent pool rotated per request",
    )
    suggest_url: str = Field(
        default="https://www.google.com/complete/search",
        description="Autocomplete upstream endpoint",
    )

    @field_validator("engines", mode="before")
    @classmethod
    def _merge_engines(cls, v: Any) -> Any:
        """Overlay configured entries on the built-in defaults, keyed by canonical name.

        A partial entry such as ``{"duckduckgo": {"enabled": False}}`` only
        changes that engine; the other defaults stay registered.
        """
        if not isinstance(v, dict):
            return v
        merged: dict[str, dict[str, Any]] = {name: cfg.model_dump() for name, cfg in _default_engines().items()}
        for name, cfg in v.items():
            if isinstance(cfg, EngineConfig):
                cfg = cfg.model_dump(exclude_unset=True)
            key = canonical_engine_name(str(name))
            merged[key] = {**merged.get(key, {}), **(cfg or {})}
        return merged

    def engine_config(self, name: str) -> EngineConfig | None:
        """Configuration for engine *name*, matched case-insensitively."""
        for key, cfg in self.engines.items():
            if key.lower() == name.lower():
                return cfg
        return None


class ScoringSettings(BaseModel):
    """Relevance heuristic constants.

    The values are tuning choices; the scorer reads every constant from here.
    """

    levenshtein_weight: float = Field(default=0.3, ge=0)
    exact_match_weight: float = Field(default=0.4, ge=0)
    term_ratio_weight: float = Field(default=0.3, ge=0)

    title_weight: float = Field(default=0.4, ge=0)
    snippet_weight: float = Field(default=0.3, ge=0)
    link_weight: float = Field(default=0.1, ge=0)

    https_bonus: float = Field(default=0.1)
    min_snippet_length: int = Field(default=50, ge=0)
    max_snippet_length: int | None = Field(default=500, description="None disables the upper bound")
    snippet_length_penalty: float = Field(default=0.8, ge=0)

    blocked_domains: list[str] = Field(default_factory=list)
    blocked_domain_penalty: float = Field(default=0.5, ge=0)
    trusted_domains: list[str] = Field(
        default_factory=lambda: [
            "wikipedia.org",
            "developer.mozilla.org",
            "docs.python.org",
            "doc.rust-lang.org",
            "docs.rs",
            "readthedocs.io",
            "github.com",
            "gitlab.com",
            "stackoverflow.com",
        ]
    )
    trusted_domain_bonus: float = Field(default=0.2)

    intent_keywords: list[str] = Field(
        default_factory=lambda: [
            "definition",
            "tutorial",
            "guide",
            "documentation",
            "docs",
            "reference",
            "manual",
            "how to",
            "introduction",
            "overview",
        ]
    )
    intent_bonus: float = Field(default=0.1)

    exact_title_bonus: float = Field(default=0.3)
    exact_snippet_bonus: float = Field(default=0.2)

    duplicate_link_similarity: float = Field(default=0.9, ge=0, le=1)


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the SEARCHFUSE_ prefix.
    Nested settings use double underscores: SEARCHFUSE_SERVER__PORT=8080

    Example:
        SEARCHFUSE_CACHE__REDIS_URL=redis://redis:6379/0
        SEARCHFUSE_CACHE__BACKEND=memory
        SEARCHFUSE_SEARCH__TIMEOUT=15
    """

    model_config = {
        "env_prefix": "SEARCHFUSE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    app_name: str = Field(default="SearchFuse", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    server: ServerSettings = Field(default_factory=ServerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file override environment variables; anything
        the file leaves out still falls back to the environment.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
