"""
Provider profile models.

A provider profile is a user-configured remote endpoint (a proxy, an
enterprise gateway or a local LLM server) that speaks either the Claude
messages API or the OpenAI chat completions API, together with its
credentials, model mapping and fallback priority.

Records are exchanged with the settings store using camelCase keys, so
every model here accepts both ``base_url=`` and ``baseUrl=``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.settings import DEFAULT_PROVIDER_TIMEOUT_MS, DEFAULT_RATE_LIMIT_RPM


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class ProviderProfileType(str, Enum):
    """API compatibility of a profile endpoint."""

    ANTHROPIC_COMPATIBLE = "anthropic-compatible"
    OPENAI_COMPATIBLE = "openai-compatible"


class CamelModel(BaseModel):
    """Base model serializing to camelCase for the settings store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        """Dump using camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ModelMappingEntry(CamelModel):
    """Maps a local model alias to the name the remote endpoint expects."""

    local_model: str  # e.g. "claude-3-opus"
    remote_model: str  # e.g. "proxy-claude-opus-v1"


class ConnectionTestResult(CamelModel):
    """Outcome of a one-shot connection test against a profile."""

    success: bool
    response_time_ms: Optional[int] = None
    error: Optional[str] = None
    available_models: Optional[List[str]] = None
    tested_at: str = Field(default_factory=utc_now_iso)


class SsrfValidationResult(CamelModel):
    """Result of checking a base URL against the internal-address blocklist."""

    safe: bool
    reason: Optional[str] = None
    bypassed_by_user: Optional[bool] = None


class ProviderProfile(CamelModel):
    """A configured remote endpoint.

    The ``type`` decides which translator a provider built from this profile
    uses; changing it means constructing a new provider.
    """

    id: str
    name: str
    type: ProviderProfileType
    base_url: str
    api_key: str
    model_mapping: List[ModelMappingEntry] = Field(default_factory=list)
    is_active: bool = True
    priority: int = 0
    timeout: int = DEFAULT_PROVIDER_TIMEOUT_MS
    description: Optional[str] = None
    custom_ca_cert: Optional[str] = None  # PEM bundle for enterprise proxies
    allow_internal_urls: bool = False
    rate_limit_rpm: int = DEFAULT_RATE_LIMIT_RPM  # Advisory only, not enforced here
    last_connection_test: Optional[ConnectionTestResult] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def redacted(self) -> "ProviderProfile":
        """Copy safe to return from the API: the API key is masked."""
        return self.model_copy(update={"api_key": mask_secret(self.api_key)})


class CreateProviderProfileInput(CamelModel):
    """Input for creating a new provider profile."""

    name: str
    type: ProviderProfileType
    base_url: str
    api_key: str
    model_mapping: Optional[List[ModelMappingEntry]] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    timeout: Optional[int] = None
    description: Optional[str] = None
    custom_ca_cert: Optional[str] = None
    allow_internal_urls: Optional[bool] = None
    rate_limit_rpm: Optional[int] = None


class UpdateProviderProfileInput(CamelModel):
    """Partial update of an existing profile. Unset fields are left unchanged."""

    id: str
    name: Optional[str] = None
    type: Optional[ProviderProfileType] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model_mapping: Optional[List[ModelMappingEntry]] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    timeout: Optional[int] = None
    description: Optional[str] = None
    custom_ca_cert: Optional[str] = None
    allow_internal_urls: Optional[bool] = None
    rate_limit_rpm: Optional[int] = None


class ProviderProfileList(CamelModel):
    """Profiles plus the number of active profiles per type."""

    profiles: List[ProviderProfile]
    active_count: dict[str, int]


def mask_secret(secret: str) -> str:
    """Keep only the last four characters of a credential."""
    if len(secret) <= 8:
        return "****"
    return f"****{secret[-4:]}"
