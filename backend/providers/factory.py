"""
Provider factory for creating AI provider instances.

This module builds proxy providers from profiles and performs the startup
registration of the built-in providers.
"""

import logging
from typing import Optional

import httpx
from core.exceptions import ConfigurationError
from domain.provider_profile import ProviderProfile, ProviderProfileType

from .anthropic_proxy import AnthropicProxyProvider
from .base import AIProvider
from .claude import ClaudeProvider
from .model_families import is_claude_model
from .openai_proxy import OpenAIProxyProvider
from .registry import ProviderRegistry

logger = logging.getLogger("ProviderFactory")


def create_provider_from_profile(
    profile: ProviderProfile,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AIProvider:
    """Create the provider bound to a profile.

    Args:
        profile: Profile whose type selects the translator
        http_transport: Optional transport for HTTP-based translators (tests)

    Returns:
        A provider instance for this profile

    Raises:
        ConfigurationError: If the profile type is not supported
    """
    if profile.type == ProviderProfileType.ANTHROPIC_COMPATIBLE:
        return AnthropicProxyProvider(profile)
    if profile.type == ProviderProfileType.OPENAI_COMPATIBLE:
        return OpenAIProxyProvider(profile, transport=http_transport)
    raise ConfigurationError(
        f"Unknown profile type: {profile.type}",
        profile_id=profile.id,
        profile_name=profile.name,
    )


def register_default_providers(registry: ProviderRegistry) -> ProviderRegistry:
    """Register the built-in providers. Call once at startup."""
    registry.register(
        "claude",
        ClaudeProvider,
        aliases=["anthropic"],
        can_handle_model=is_claude_model,
        priority=0,
    )
    logger.info(f"Registered default providers: {registry.names()}")
    return registry
