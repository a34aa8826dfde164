"""
Core Exceptions - Custom exception classes for MediaScout.

This module defines the error taxonomy used by the sandbox, the
extraction orchestrator and the command line. Extraction operations
turn most of these into empty outcomes; only context lookups raise
across the orchestrator boundary.
"""

from typing import Optional, Any


class MediaScoutError(Exception):
    """Base exception class for all MediaScout-specific errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        """
        Initialize MediaScout error.

        Args:
            message: Human-readable error message
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class ConfigurationError(MediaScoutError):
    """Raised when configuration-related errors occur."""

    def __init__(self, message: str, config_path: Optional[str] = None, details: Optional[Any] = None):
        """
        Initialize configuration error.

        Args:
            message: Error description
            config_path: Path to the problematic configuration file
            details: Additional error context
        """
        super().__init__(message, details)
        self.config_path = config_path


class ValidationError(MediaScoutError):
    """Raised when a result model rejects its input."""

    def __init__(self, message: str, field_name: Optional[str] = None, invalid_value: Optional[Any] = None, details: Optional[Any] = None):
        """
        Initialize validation error.

        Args:
            message: Error description
            field_name: Name of the field that failed validation
            invalid_value: The invalid value that caused the error
            details: Additional error context
        """
        super().__init__(message, details)
        self.field_name = field_name
        self.invalid_value = invalid_value


class NetworkError(MediaScoutError):
    """Raised when a fetch fails."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None, details: Optional[Any] = None):
        """
        Initialize network error.

        Args:
            message: Error description
            url: URL that caused the error
            status_code: HTTP status code if applicable
            details: Additional error context
        """
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


class ModuleError(MediaScoutError):
    """Base class for errors raised by extraction modules or their contexts."""

    def __init__(self, message: str, module_id: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.module_id = module_id


class ModuleLoadError(ModuleError):
    """Raised when a module script fails to compile or evaluate."""


class FunctionMissingError(ModuleError):
    """Raised when a module does not export the requested extraction function."""

    def __init__(self, message: str, module_id: Optional[str] = None, function_name: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, module_id, details)
        self.function_name = function_name


class ModuleTimeoutError(ModuleError):
    """Raised when a module call exceeds its deadline."""

    def __init__(self, message: str, module_id: Optional[str] = None, timeout: Optional[float] = None, details: Optional[Any] = None):
        """
        Initialize timeout error.

        Args:
            message: Error description
            module_id: Module whose call timed out
            timeout: Deadline in seconds that was exceeded
            details: Additional error context
        """
        super().__init__(message, module_id, details)
        self.timeout = timeout


class ContextNotFoundError(ModuleError):
    """Raised when a call targets a module context that was never loaded or was evicted."""


class MalformedResultError(MediaScoutError):
    """Raised when module output cannot be parsed into the expected shape."""

    def __init__(self, message: str, raw_value: Optional[Any] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.raw_value = raw_value


class ExtractionCancelledError(MediaScoutError):
    """Raised when the caller cancels an in-flight extraction."""

    def __init__(self, message: str = "Extraction cancelled", reason: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.reason = reason


# Export all exception classes
__all__ = [
    "MediaScoutError",
    "ConfigurationError",
    "ValidationError",
    "NetworkError",
    "ModuleError",
    "ModuleLoadError",
    "FunctionMissingError",
    "ModuleTimeoutError",
    "ContextNotFoundError",
    "MalformedResultError",
    "ExtractionCancelledError",
]
