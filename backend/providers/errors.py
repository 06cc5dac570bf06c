"""
Error classification for provider calls.

Translators never let raw httpx or SDK exceptions escape: they classify the
failure into a ProviderError subclass, attach the profile identity and
re-raise.
"""

import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Mapping, Optional

import httpx
from claude_agent_sdk import (
    ClaudeSDKError,
    CLIConnectionError,
    CLIJSONDecodeError,
    CLINotFoundError,
    ProcessError,
)

from core.exceptions import (
    AuthError,
    ConfigurationError,
    NetworkError,
    ProtocolError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    UpstreamError,
)
from domain.provider_profile import ProviderProfile


_RATE_LIMIT_PATTERN = re.compile(r"rate.?limit|too many requests|\b429\b|overloaded", re.IGNORECASE)
_AUTH_PATTERN = re.compile(
    r"\b40[13]\b|unauthori[sz]ed|forbidden|authentication|invalid (x-)?api.?key", re.IGNORECASE
)
_RETRY_AFTER_TEXT_PATTERN = re.compile(r"retry.?after[^\d]{0,10}(\d+(?:\.\d+)?)", re.IGNORECASE)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def error_from_response(
    status_code: int,
    reason_phrase: str,
    body: str,
    headers: Optional[Mapping[str, str]] = None,
    max_body_chars: int = 500,
    label: str = "API",
) -> ProviderError:
    """Build a classified error for a non-2xx HTTP response.

    Args:
        status_code: HTTP status
        reason_phrase: HTTP reason phrase
        body: Response body text (truncated in the message)
        headers: Response headers, consulted for Retry-After
        max_body_chars: Body truncation length
        label: Wire protocol name used in the message (e.g. "OpenAI API")

    Returns:
        AuthError, RateLimitError or UpstreamError
    """
    snippet = body[:max_body_chars] if body else ""
    message = f"{label} error: {status_code} {reason_phrase}".rstrip()
    if snippet:
        message = f"{message} - {snippet}"

    if status_code in (401, 403):
        return AuthError(message, status_code=status_code)
    if status_code == 429:
        retry_after = parse_retry_after((headers or {}).get("retry-after"))
        return RateLimitError(message, status_code=status_code, retry_after=retry_after)
    return UpstreamError(message, status_code=status_code)


def classify_message(message: str) -> ProviderError:
    """Classify a bare failure message (CLI output, SDK error results)."""
    if _RATE_LIMIT_PATTERN.search(message):
        match = _RETRY_AFTER_TEXT_PATTERN.search(message)
        retry_after = float(match.group(1)) if match else None
        return RateLimitError(message, retry_after=retry_after)
    if _AUTH_PATTERN.search(message):
        return AuthError(message)
    return UpstreamError(message)


def classify_error(error: BaseException) -> ProviderError:
    """Map any exception raised during a provider call to a ProviderError.

    ProviderErrors pass through unchanged.
    """
    if isinstance(error, ProviderError):
        return error

    message = str(error) or error.__class__.__name__

    # httpx: timeouts first, they subclass TransportError too
    if isinstance(error, httpx.TimeoutException):
        return ProviderTimeoutError(f"Request timed out: {message}")
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return error_from_response(response.status_code, response.reason_phrase, response.text, response.headers)
    if isinstance(error, (httpx.ConnectError, httpx.NetworkError, httpx.ProxyError)):
        return NetworkError(f"Network error: {message}")
    if isinstance(error, (httpx.RemoteProtocolError, httpx.DecodingError)):
        return ProtocolError(f"Protocol error: {message}")
    if isinstance(error, httpx.UnsupportedProtocol):
        return ConfigurationError(f"Invalid endpoint: {message}")
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"Network error: {message}")

    # Claude Agent SDK
    if isinstance(error, CLINotFoundError):
        return ConfigurationError(f"Claude Code CLI not found: {message}")
    if isinstance(error, CLIConnectionError):
        return NetworkError(f"Could not connect to Claude Code CLI: {message}")
    if isinstance(error, CLIJSONDecodeError):
        return ProtocolError(f"Malformed SDK output: {message}")
    if isinstance(error, ProcessError):
        stderr = getattr(error, "stderr", None) or ""
        return classify_message(f"{message} {stderr}".strip())
    if isinstance(error, ClaudeSDKError):
        return classify_message(message)

    if isinstance(error, TimeoutError):
        return ProviderTimeoutError(message)
    if isinstance(error, (ConnectionError, OSError)):
        return NetworkError(f"Network error: {message}")
    if isinstance(error, ValueError):
        return ProtocolError(message)

    return classify_message(message)


def annotate_error(error: BaseException, profile: ProviderProfile) -> ProviderError:
    """Classify an error and attach the profile identity.

    The message gets a profile suffix, or a rate-limit tip for rate limits.
    """
    classified = classify_error(error)
    if classified.profile_id is not None:
        return classified

    if isinstance(classified, RateLimitError):
        message = (
            f"{classified.message}\n\nTip: Profile \"{profile.name}\" hit rate limit. "
            "Consider adjusting rate limits or using a different profile."
        )
    else:
        message = f"{classified.message} (Profile: {profile.name})"

    annotated = type(classified)(
        message,
        kind=classified.kind,
        profile_id=profile.id,
        profile_name=profile.name,
        status_code=classified.status_code,
        retry_after=classified.retry_after,
    )
    return annotated
