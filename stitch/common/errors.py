"""Domain errors and failure typing."""


class StitchError(Exception):
    """Base class for stitching failures."""

    error_code = "STITCH_ERROR"


class ConfigError(StitchError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class BackendError(StitchError):
    """Raised when a search backend cannot produce a result."""

    error_code = "BACKEND_ERROR"


class CacheError(StitchError):
    """Raised by cache adapters. Never escapes the backend invoker."""

    error_code = "CACHE_ERROR"
