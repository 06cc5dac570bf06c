"""
Domain layer for provider routing.

Provider profiles, model mapping, base URL validation and the normalized
streaming events every provider produces.
"""

from .model_mapping import map_model_from_remote, map_model_to_remote
from .provider_profile import (
    ConnectionTestResult,
    CreateProviderProfileInput,
    ModelMappingEntry,
    ProviderProfile,
    ProviderProfileList,
    ProviderProfileType,
    SsrfValidationResult,
    UpdateProviderProfileInput,
)
from .ssrf import validate_base_url_ssrf
from .streaming import (
    AssistantTextDelta,
    AssistantToolCall,
    ErrorEvent,
    InternalStreamEvent,
    ResultEvent,
    is_terminal,
)

__all__ = [
    # Profiles
    "ProviderProfileType",
    "ModelMappingEntry",
    "ConnectionTestResult",
    "SsrfValidationResult",
    "ProviderProfile",
    "CreateProviderProfileInput",
    "UpdateProviderProfileInput",
    "ProviderProfileList",
    "map_model_to_remote",
    "map_model_from_remote",
    "validate_base_url_ssrf",
    # Streaming types
    "AssistantTextDelta",
    "AssistantToolCall",
    "ResultEvent",
    "ErrorEvent",
    "InternalStreamEvent",
    "is_terminal",
]
