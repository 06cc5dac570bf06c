"""
Anthropic-compatible proxy provider.

Uses the Claude Agent SDK but routes it through a profile's endpoint
instead of the default Anthropic API. Only three things differ from the
default provider: the endpoint and credential, the model name, and the
permission policy.
"""

from __future__ import annotations

import logging
import os
from typing import AsyncIterator, Dict, List, Optional

from core import get_settings
from domain.streaming import InternalStreamEvent

from providers.base import ModelDefinition, ProviderType, QueryRequest
from providers.cancellation import CancellationToken, RequestGuard
from providers.claude import (
    CLAUDE_FEATURES,
    PermissionPolicy,
    build_query_options,
    claude_default_models,
    stream_sdk_events,
)
from providers.errors import annotate_error
from providers.profile_provider import ProfileBackedProvider

logger = logging.getLogger("AnthropicProxyProvider")

BASE_URL_ENV_VAR = "ANTHROPIC_BASE_URL"
API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"


def autonomous_policy() -> PermissionPolicy:
    """Permission policy for proxy sessions.

    AUTONOMOUS MODE: destructive-operation confirmation is bypassed and the
    default tool set is enabled unless the caller restricts tools. When MCP
    servers are supplied no tool restriction is applied at all. Proxied
    agents therefore run unattended with full tool access.
    """
    return PermissionPolicy(
        permission_mode="bypassPermissions",
        default_tools=get_settings().get_proxy_default_tools(),
        unrestricted_with_mcp=True,
    )


class AnthropicProxyProvider(ProfileBackedProvider):
    """Routes SDK queries through an Anthropic-compatible endpoint.

    Supports:
    - Custom base URLs (proxy endpoints, enterprise gateways)
    - Model name mapping (local -> remote)
    - Minimal environment forwarding to the CLI subprocess
    """

    NAME_PREFIX = "anthropic-proxy"
    FEATURES = CLAUDE_FEATURES
    MAPPED_SUPPORTS_VISION = True

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.ANTHROPIC_PROXY

    def build_env(self) -> Dict[str, str]:
        """Allowlisted passthrough variables plus the endpoint and credential overrides."""
        env = {}
        for key in get_settings().get_proxy_env_allowlist():
            value = os.environ.get(key)
            if value:
                env[key] = value

        env[BASE_URL_ENV_VAR] = self.base_url
        env[API_KEY_ENV_VAR] = self.profile.api_key
        return env

    async def stream_query(
        self,
        request: QueryRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[InternalStreamEvent]:
        """Stream one SDK query through the proxy as internal events."""
        remote_model = self.remote_model(request.model)
        logger.debug(f"Model mapping: {request.model} -> {remote_model} (profile: {self.profile.name})")

        try:
            options = build_query_options(
                request,
                model=remote_model,
                policy=autonomous_policy(),
                env=self.build_env(),
            )
            guard = RequestGuard(timeout_ms=self.profile.timeout, token=cancel_token)
            logger.info(f"Executing query via proxy: {self.profile.name} ({self.profile.base_url})")

            async for event in stream_sdk_events(request, options, guard):
                yield event

        except Exception as e:
            error = annotate_error(e, self.profile)
            logger.error(
                f"stream_query() failed: profile={self.profile.name} base_url={self.profile.base_url} "
                f"kind={error.kind.value} retry_after={error.retry_after} error={error.message}"
            )
            raise error from e

    def default_models(self) -> List[ModelDefinition]:
        return claude_default_models(self.name, f"Via {self.profile.name}")
