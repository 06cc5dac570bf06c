"""
Agent options builder for Claude SDK queries.

This module handles the construction of ClaudeAgentOptions from a
QueryRequest, including:
- Tool restriction according to a PermissionPolicy
- Session resume (only when there is history to resume)
- Working directory and CLI path defaults
"""

import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from claude_agent_sdk import ClaudeAgentOptions
from core import get_settings

from providers.base import QueryRequest

from .configs import DEFAULT_STATIC_CONFIG, PermissionPolicy

logger = logging.getLogger("OptionsBuilder")


def _get_claude_working_dir() -> str:
    """Get a valid working directory for Claude subprocess.

    Creates and returns a cross-platform temporary directory.
    """
    temp_dir = Path(tempfile.gettempdir()) / "claude-empty"
    temp_dir.mkdir(parents=True, exist_ok=True)
    return str(temp_dir)


def resolve_allowed_tools(request: QueryRequest, policy: PermissionPolicy) -> List[str]:
    """Tool restriction for a request. An empty list means no restriction."""
    if policy.unrestricted_with_mcp and request.mcp_servers:
        return []
    if request.allowed_tools is not None:
        return list(request.allowed_tools)
    return list(policy.default_tools)


def _log_sdk_stderr(line: str) -> None:
    logger.error(f"[SDK stderr] {line.strip()}")


def build_query_options(
    request: QueryRequest,
    *,
    model: str,
    policy: PermissionPolicy,
    env: Optional[Dict[str, str]] = None,
) -> ClaudeAgentOptions:
    """Build Claude Agent SDK options for one query.

    Args:
        request: The normalized request
        model: Model name sent to the SDK (already mapped for proxies)
        policy: Permission mode and tool gating
        env: Extra environment for the CLI subprocess

    Returns:
        Configured ClaudeAgentOptions
    """
    settings = get_settings()
    static = DEFAULT_STATIC_CONFIG

    options = ClaudeAgentOptions(
        model=model,
        system_prompt=request.system_prompt,
        max_turns=request.max_turns or settings.default_max_turns,
        cwd=request.cwd or _get_claude_working_dir(),
        cli_path=settings.claude_cli_path or None,
        permission_mode=policy.permission_mode,
        allowed_tools=resolve_allowed_tools(request, policy),
        mcp_servers=dict(request.mcp_servers),
        setting_sources=request.setting_sources if request.setting_sources is not None else static.setting_sources,
        max_thinking_tokens=request.max_thinking_tokens,
        env={**static.env, **(env or {})},
        include_partial_messages=static.include_partial_messages,
        stderr=_log_sdk_stderr,
    )

    # Resume only applies when there is a conversation to continue
    if request.resume_session_id and request.conversation_history:
        options.resume = request.resume_session_id

    return options
