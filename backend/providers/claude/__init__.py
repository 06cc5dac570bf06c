"""
Claude Code provider implementation.

This module provides the default provider that wraps the Claude Agent SDK,
plus the SDK plumbing shared with the anthropic-compatible proxy provider.
"""

from .client import stream_sdk_events, stream_sdk_messages
from .configs import DEFAULT_STATIC_CONFIG, ClaudeStaticConfig, PermissionPolicy
from .options import build_query_options, resolve_allowed_tools
from .parser import ClaudeStreamParser
from .provider import CLAUDE_FEATURES, ClaudeProvider, claude_default_models

__all__ = [
    "CLAUDE_FEATURES",
    "DEFAULT_STATIC_CONFIG",
    "ClaudeProvider",
    "ClaudeStaticConfig",
    "ClaudeStreamParser",
    "PermissionPolicy",
    "build_query_options",
    "claude_default_models",
    "resolve_allowed_tools",
    "stream_sdk_events",
    "stream_sdk_messages",
]
