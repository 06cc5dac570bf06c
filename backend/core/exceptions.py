"""
Exception hierarchy for provider routing.

Every failure surfaced by a provider is a ProviderError with an explicit
ErrorKind, so callers can branch on the kind instead of parsing messages.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of provider failures."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    PROTOCOL = "protocol"
    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base exception for provider errors.

    Attributes:
        kind: Error classification
        profile_id: ID of the profile the failing provider was built from
        profile_name: Display name of that profile
        status_code: Upstream HTTP status, when there was one
        retry_after: Seconds to wait before retrying (rate limits only)
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        profile_id: Optional[str] = None,
        profile_name: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.profile_id = profile_id
        self.profile_name = profile_name
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        """Convert to dict for error events and API responses."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "profile_id": self.profile_id,
            "profile_name": self.profile_name,
            "status_code": self.status_code,
            "retry_after": self.retry_after,
        }


class NetworkError(ProviderError):
    """Connect, DNS or TLS failure."""

    kind = ErrorKind.NETWORK


class ProviderTimeoutError(ProviderError):
    """The request deadline was exceeded."""

    kind = ErrorKind.TIMEOUT


class RequestCancelledError(ProviderError):
    """The caller cancelled the request."""

    kind = ErrorKind.CANCELLED


class AuthError(ProviderError):
    """Upstream rejected the credentials (HTTP 401/403)."""

    kind = ErrorKind.AUTH


class RateLimitError(ProviderError):
    """Raised when rate limited by the upstream provider."""

    kind = ErrorKind.RATE_LIMIT


class ProtocolError(ProviderError):
    """Malformed or unexpected wire payload."""

    kind = ErrorKind.PROTOCOL


class ConfigurationError(ProviderError):
    """Unknown profile type, missing profile, or a rejected base URL."""

    kind = ErrorKind.CONFIGURATION


class UpstreamError(ProviderError):
    """Any other non-2xx response from the upstream endpoint."""

    kind = ErrorKind.UPSTREAM


class FallbackExhaustedError(ProviderError):
    """Every provider in a fallback chain failed.

    Wraps the error of the last provider tried. Per-attempt details are only
    available in the log records written while walking the chain.
    """

    def __init__(self, model_id: str, last_error: BaseException, attempted: list[str]):
        if isinstance(last_error, ProviderError):
            kind = last_error.kind
            profile_id = last_error.profile_id
            profile_name = last_error.profile_name
            status_code = last_error.status_code
            retry_after = last_error.retry_after
        else:
            kind, profile_id, profile_name, status_code, retry_after = ErrorKind.UNKNOWN, None, None, None, None

        super().__init__(
            f"All {len(attempted)} providers failed for model {model_id}: {last_error}",
            kind=kind,
            profile_id=profile_id,
            profile_name=profile_name,
            status_code=status_code,
            retry_after=retry_after,
        )
        self.model_id = model_id
        self.last_error = last_error
        self.attempted = attempted
