"""
Tests for base URL SSRF validation.
"""

import pytest
from domain.ssrf import validate_base_url_ssrf


INTERNAL_URLS = [
    "http://localhost:8080",
    "http://LOCALHOST",
    "http://127.0.0.1:8080",
    "http://127.8.9.10",
    "http://[::1]:3000",
    "http://10.1.2.3",
    "http://172.16.0.1",
    "http://172.31.255.255",
    "http://192.168.1.10",
    "http://169.254.169.254/latest/meta-data",
    "http://0.0.0.0",
    "http://[fe80::1]",
    "http://[fd00::1]",
]


class TestValidateBaseUrlSsrf:
    """Tests for validate_base_url_ssrf."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://api.openai.com",
            "https://gateway.example.com:8443/v1",
            "http://172.32.0.1",
            "http://11.0.0.1",
        ],
    )
    def test_public_urls_are_safe(self, url):
        """Test that public hosts pass."""
        result = validate_base_url_ssrf(url)

        assert result.safe is True
        assert result.reason is None
        assert result.bypassed_by_user is None

    @pytest.mark.parametrize("url", INTERNAL_URLS)
    def test_internal_urls_are_rejected(self, url):
        """Test that private and loopback hosts are blocked."""
        result = validate_base_url_ssrf(url)

        assert result.safe is False
        assert "Internal/private addresses are not allowed" in result.reason
        assert 'Enable "Allow Internal URLs"' in result.reason

    def test_internal_url_allowed_with_opt_in(self):
        """Test that the opt-in bypasses the blocklist and says so."""
        result = validate_base_url_ssrf("http://127.0.0.1:8080", allow_internal_urls=True)

        assert result.safe is True
        assert result.bypassed_by_user is True

    @pytest.mark.parametrize("url", INTERNAL_URLS)
    def test_opt_in_bypasses_every_blocked_host(self, url):
        result = validate_base_url_ssrf(url, allow_internal_urls=True)

        assert result.safe is True
        assert result.bypassed_by_user is True

    @pytest.mark.parametrize("url", INTERNAL_URLS + ["https://api.openai.com", "ftp://example.com", "not a url"])
    @pytest.mark.parametrize("allow_internal_urls", [False, True])
    def test_repeated_calls_agree(self, url, allow_internal_urls):
        """Test that validation is idempotent."""
        first = validate_base_url_ssrf(url, allow_internal_urls)
        second = validate_base_url_ssrf(url, allow_internal_urls)

        assert first == second

    def test_rejects_non_http_schemes(self):
        """Test that only http and https are accepted."""
        result = validate_base_url_ssrf("ftp://example.com")

        assert result.safe is False
        assert result.reason == "Only HTTP and HTTPS protocols are allowed"

    def test_scheme_check_applies_even_with_opt_in(self):
        """Test that the opt-in does not allow other schemes."""
        result = validate_base_url_ssrf("file:///etc/passwd", allow_internal_urls=True)

        assert result.safe is False
        assert result.reason == "Only HTTP and HTTPS protocols are allowed"

    @pytest.mark.parametrize("url", ["not a url", "", "http://", "https://example.com:notaport"])
    def test_unparseable_urls_are_rejected(self, url):
        """Test that malformed URLs never raise and are reported as invalid."""
        result = validate_base_url_ssrf(url)

        assert result.safe is False
        assert result.reason.startswith("Invalid URL")
