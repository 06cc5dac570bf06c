"""
Claude SDK session configuration.

Static settings are shared by every SDK session. The permission policy is
the one thing that differs between the default provider and the
anthropic-compatible proxy path, so it lives in its own config.
"""

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class ClaudeStaticConfig:
    """Static configuration for Claude sessions.

    These settings are the same for all Claude sessions and don't
    change based on the request or the profile.
    """

    # Setting sources (empty = no external settings)
    setting_sources: List[str] = field(default_factory=list)

    # Include partial messages so text streams as deltas
    include_partial_messages: bool = True

    # Environment variables for Claude subprocess
    # These disable telemetry and unnecessary traffic
    env: Dict[str, str] = field(
        default_factory=lambda: {
            "CLAUDE_AGENT_SDK_SKIP_VERSION_CHECK": "true",
            "CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC": "true",
            "DISABLE_TELEMETRY": "true",
            "DISABLE_ERROR_REPORTING": "true",
            "CLAUDE_CODE_DISABLE_FEEDBACK_SURVEY": "true",
        }
    )


@dataclass
class PermissionPolicy:
    """Permission and tool gating for one provider kind.

    Attributes:
        permission_mode: SDK permission mode
        default_tools: Tools enabled when the caller doesn't restrict them
        unrestricted_with_mcp: Lift the tool restriction when MCP servers are supplied
    """

    permission_mode: str = "default"
    default_tools: List[str] = field(default_factory=list)
    unrestricted_with_mcp: bool = False


# Default static config singleton
DEFAULT_STATIC_CONFIG = ClaudeStaticConfig()

