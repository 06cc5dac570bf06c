"""
Multi-provider abstraction layer for AI backends.

This package routes one normalized request to the default Claude SDK
provider or to user-configured proxy profiles, and falls back across them.

Usage:
    from providers import FallbackExecutor, ProviderRegistry, QueryRequest, register_default_providers

    registry = register_default_providers(ProviderRegistry())
    executor = FallbackExecutor(registry)

    request = QueryRequest(prompt="Hello!", model="claude-sonnet-4-20250514")
    async for event in executor.stream_with_fallback(request.model, profiles, request):
        print(event.to_dict())
"""

from .base import (
    AIProvider,
    InstallationStatus,
    ModelDefinition,
    ProviderType,
    QueryRequest,
)
from .cancellation import CancellationToken, RequestGuard
from .factory import create_provider_from_profile, register_default_providers
from .fallback import FallbackExecutor, parse_profile_model_id
from .registry import ProviderRegistration, ProviderRegistry

__all__ = [
    # Base classes
    "AIProvider",
    "InstallationStatus",
    "ModelDefinition",
    "ProviderType",
    "QueryRequest",
    # Cancellation
    "CancellationToken",
    "RequestGuard",
    # Registry and routing
    "ProviderRegistration",
    "ProviderRegistry",
    "FallbackExecutor",
    "parse_profile_model_id",
    # Factory functions
    "create_provider_from_profile",
    "register_default_providers",
]
