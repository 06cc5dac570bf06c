"""
SSRF guard for provider profile base URLs.

Profiles are user-supplied endpoints that the server later calls with a
credential attached, so creating or updating a profile must not be usable
to reach internal network services. The check is string-pattern based: no
DNS resolution, no numeric range parsing and no redirect checks at request
time. Unusual literal forms (octal or hex IPs, for example) are not
normalised and therefore not caught.
"""

import re
from urllib.parse import urlsplit

from domain.provider_profile import SsrfValidationResult

ALLOWED_SCHEMES = ("http", "https")

# Checked in order; the first match decides.
INTERNAL_HOST_PATTERNS = [
    re.compile(r"^localhost$", re.IGNORECASE),
    re.compile(r"^127\.\d+\.\d+\.\d+$"),  # 127.x.x.x
    re.compile(r"^\[?::1\]?$"),  # IPv6 localhost
    re.compile(r"^10\.\d+\.\d+\.\d+$"),  # 10.x.x.x (private)
    re.compile(r"^172\.(1[6-9]|2\d|3[01])\.\d+\.\d+$"),  # 172.16-31.x.x (private)
    re.compile(r"^192\.168\.\d+\.\d+$"),  # 192.168.x.x (private)
    re.compile(r"^169\.254\.\d+\.\d+$"),  # Link-local
    re.compile(r"^0\.0\.0\.0$"),  # Any interface
    re.compile(r"^\[?fe80:", re.IGNORECASE),  # IPv6 link-local
    re.compile(r"^\[?fc00:", re.IGNORECASE),  # IPv6 unique-local
    re.compile(r"^\[?fd00:", re.IGNORECASE),  # IPv6 unique-local
]


def _parse_hostname(url: str) -> tuple[str, str]:
    parts = urlsplit(url.strip())
    # Touch the port so malformed ports fail parsing like any other bad URL
    _ = parts.port
    if not parts.scheme:
        raise ValueError(f"missing scheme in {url!r}")
    return parts.scheme.lower(), (parts.hostname or "").lower()


def validate_base_url_ssrf(url: str, allow_internal_urls: bool = False) -> SsrfValidationResult:
    """Validate a base URL against private and internal address patterns.

    Args:
        url: The URL to validate
        allow_internal_urls: Whether the profile opted in to internal addresses

    Returns:
        SsrfValidationResult; never raises
    """
    try:
        scheme, hostname = _parse_hostname(url)
    except Exception as e:
        return SsrfValidationResult(safe=False, reason=f"Invalid URL: {e}")

    if scheme not in ALLOWED_SCHEMES:
        return SsrfValidationResult(safe=False, reason="Only HTTP and HTTPS protocols are allowed")

    if not hostname:
        return SsrfValidationResult(safe=False, reason=f"Invalid URL: missing host in {url!r}")

    for pattern in INTERNAL_HOST_PATTERNS:
        if pattern.search(hostname):
            if allow_internal_urls:
                return SsrfValidationResult(safe=True, bypassed_by_user=True)
            return SsrfValidationResult(
                safe=False,
                reason=(
                    f"Internal/private addresses are not allowed: {hostname}. "
                    'Enable "Allow Internal URLs" to bypass this check.'
                ),
            )

    return SsrfValidationResult(safe=True)
