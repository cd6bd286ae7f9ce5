"""Engine-specific exceptions."""


class EngineError(Exception):
    """Base exception for engine errors."""


class FetchError(EngineError):
    """Raised when the engine cannot reach its backend or gets a non-success response."""


class ParseError(EngineError):
    """Raised when a backend response does not have the expected structure."""


class RateLimited(EngineError):
    """Raised when the local rate limiter denies a request to an engine."""

    def __init__(self, engine: str) -> None:
        super().__init__(f"Rate limit exceeded for engine '{engine}'")
        self.engine = engine


class ConfigurationError(EngineError):
    """Raised when engine configuration is invalid."""
