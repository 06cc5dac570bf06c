"""
Claude Code provider implementation.

This module provides the ClaudeProvider class, the default backend: it
implements AIProvider on top of the Claude Agent SDK using the process
environment's own Anthropic credentials.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from core import get_settings
from domain.streaming import InternalStreamEvent

from providers.base import AIProvider, InstallationStatus, ModelDefinition, ProviderType, QueryRequest
from providers.cancellation import CancellationToken, RequestGuard
from providers.errors import classify_error

from .client import stream_sdk_events
from .configs import PermissionPolicy
from .options import build_query_options

logger = logging.getLogger("ClaudeProvider")

CLAUDE_FEATURES = frozenset({"tools", "text", "vision", "thinking"})


def claude_default_models(provider: str, description: str) -> List[ModelDefinition]:
    """The Claude models every Claude-speaking backend is expected to serve."""
    return [
        ModelDefinition(
            id="claude-opus-4-5-20251101",
            name="Claude Opus 4.5",
            model_string="claude-opus-4-5-20251101",
            provider=provider,
            description=description,
            context_window=200000,
            max_output_tokens=16000,
            supports_vision=True,
            tier="premium",
        ),
        ModelDefinition(
            id="claude-sonnet-4-20250514",
            name="Claude Sonnet 4",
            model_string="claude-sonnet-4-20250514",
            provider=provider,
            description=description,
            context_window=200000,
            max_output_tokens=16000,
            supports_vision=True,
            tier="standard",
        ),
        ModelDefinition(
            id="claude-haiku-4-5-20251001",
            name="Claude Haiku 4.5",
            model_string="claude-haiku-4-5-20251001",
            provider=provider,
            description=description,
            context_window=200000,
            max_output_tokens=8000,
            supports_vision=True,
            tier="basic",
        ),
    ]


class ClaudeProvider(AIProvider):
    """Claude Code provider implementing AIProvider interface.

    No profile timeout applies here; only the caller's token can cancel.
    """

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.CLAUDE

    @property
    def name(self) -> str:
        return ProviderType.CLAUDE.value

    async def stream_query(
        self,
        request: QueryRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[InternalStreamEvent]:
        settings = get_settings()
        options = build_query_options(
            request,
            model=request.model or settings.claude_model,
            policy=PermissionPolicy(permission_mode=settings.claude_permission_mode),
        )

        try:
            guard = RequestGuard(token=cancel_token)
            async for event in stream_sdk_events(request, options, guard):
                yield event
        except Exception as e:
            error = classify_error(e)
            logger.error(f"stream_query() failed: kind={error.kind.value} error={error.message}")
            if error is e:
                raise
            raise error from e

    async def detect_installation(self) -> InstallationStatus:
        """Check if Claude Code CLI is available.

        Returns:
            InstallationStatus; never raises
        """
        cli = get_settings().claude_cli_path or "claude"
        try:
            process = await asyncio.create_subprocess_exec(
                cli,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Claude Code availability check failed: {e}")
            return InstallationStatus(installed=False, method="cli", error=str(e))

        installed = process.returncode == 0
        return InstallationStatus(
            installed=installed,
            method="cli",
            authenticated=installed,
            path=cli,
            error=None if installed else f"claude --version exited with {process.returncode}",
        )

    def get_available_models(self) -> List[ModelDefinition]:
        return claude_default_models(self.name, "Claude Code")

    def supports_feature(self, feature: str) -> bool:
        return feature in CLAUDE_FEATURES
