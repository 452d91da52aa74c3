"""
Cache Engine Exceptions

Exception hierarchy for the caching layer. Only configuration and
initialization errors are ever allowed to escape the CacheService;
operational errors are logged and converted into safe defaults.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class CacheEngineError(Exception):
    """Base exception for all cache engine errors."""

    def __init__(self, message: str, component: str = "cache",
                 context: Optional[Dict[str, Any]] = None):
        """Initialize cache exception with metadata.

        Args:
            message: Error message
            component: Component where error occurred (e.g. "distributed")
            context: Additional context data (key, pattern, command, ...)
        """
        self.message = message
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured log format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class CacheConfigurationError(CacheEngineError):
    """Raised when required backend configuration is missing at startup."""
    pass


class CacheInitializationError(CacheEngineError):
    """Raised when a backend cannot be reached during initialize()."""
    pass


class CacheBackendError(CacheEngineError):
    """Raised for network failures or malformed replies from a backend."""
    pass
