"""
Core application modules.

This package contains core functionality like settings, logging, the error
taxonomy, the settings store interface, and the profile service.

Only lightweight modules are imported here; import the profile service,
SSE helpers and app factory from their own modules.
"""

# Exception exports
from .exceptions import (
    AuthError,
    ConfigurationError,
    ErrorKind,
    FallbackExhaustedError,
    NetworkError,
    ProtocolError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    RequestCancelledError,
    UpstreamError,
)
from .logging import get_logger, setup_logging
from .settings import Settings, get_settings, reset_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reset_settings",
    # Logging
    "setup_logging",
    "get_logger",
    # Exceptions
    "AuthError",
    "ConfigurationError",
    "ErrorKind",
    "FallbackExhaustedError",
    "NetworkError",
    "ProtocolError",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitError",
    "RequestCancelledError",
    "UpstreamError",
]
