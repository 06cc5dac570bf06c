"""
Abstract base classes for AI provider implementations.

This module defines the provider abstraction layer that lets the router
send one normalized request to any backend and get the same event stream
back, whichever wire protocol the backend speaks.

Architecture:
    AIProvider: Capability interface every provider implements
    QueryRequest: Provider-agnostic request
    InstallationStatus: Result of detect_installation()
    ModelDefinition: Entry returned by get_available_models()

The set of providers is closed: one variant per wire-protocol family,
identified by ProviderType.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional, Union

if TYPE_CHECKING:
    from domain.streaming import InternalStreamEvent
    from providers.cancellation import CancellationToken


class ProviderType(str, Enum):
    """Supported provider variants."""

    CLAUDE = "claude"
    ANTHROPIC_PROXY = "anthropic-proxy"
    OPENAI_PROXY = "openai-proxy"


@dataclass
class QueryRequest:
    """Provider-agnostic request.

    Attributes:
        prompt: Plain text, or a list of content parts ({"type": "text", "text": ...})
        model: Local model identifier; proxy providers map it per profile
        system_prompt: Optional system prompt
        max_turns: Maximum agent turns (SDK-based providers only)
        cwd: Working directory for SDK sessions
        allowed_tools: Explicit tool restriction, or None for the provider default
        mcp_servers: MCP server configurations forwarded to SDK sessions
        resume_session_id: SDK session to resume
        conversation_history: Prior messages; resume only applies when non-empty
        setting_sources: SDK setting sources (CLAUDE.md loading)
        max_thinking_tokens: Extended thinking budget
    """

    prompt: Union[str, List[Dict[str, Any]]]
    model: str
    system_prompt: Optional[str] = None
    max_turns: Optional[int] = None
    cwd: Optional[str] = None
    allowed_tools: Optional[List[str]] = None
    mcp_servers: Dict[str, Any] = field(default_factory=dict)
    resume_session_id: Optional[str] = None
    conversation_history: List[Dict[str, Any]] = field(default_factory=list)
    setting_sources: Optional[List[str]] = None
    max_thinking_tokens: Optional[int] = None

    def prompt_text(self) -> str:
        """Flatten the prompt to a single string (list parts joined by newline)."""
        if isinstance(self.prompt, list):
            return "\n".join(part.get("text") or "" for part in self.prompt)
        return self.prompt


@dataclass
class InstallationStatus:
    """Whether a provider is usable."""

    installed: bool
    method: str = "sdk"
    has_api_key: bool = False
    authenticated: bool = False
    path: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ModelDefinition:
    """A model a provider can serve."""

    id: str
    name: str
    model_string: str
    provider: str
    description: str = ""
    context_window: Optional[int] = None
    max_output_tokens: Optional[int] = None
    supports_vision: bool = False
    supports_tools: bool = True
    tier: Optional[str] = None


class AIProvider(ABC):
    """Abstract provider interface.

    Instances are cheap and short-lived: the fallback executor constructs
    one per candidate for a single logical request and discards it after.
    """

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Get the provider type identifier."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name used in logs (e.g., 'openai-proxy:Work Gateway')."""
        ...

    @abstractmethod
    def stream_query(
        self,
        request: QueryRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[InternalStreamEvent]:
        """Execute a request and stream normalized events.

        This is an async generator. It issues one outbound call and yields
        events as the response arrives. It cannot be restarted; a retry
        needs a fresh call.

        Args:
            request: The normalized request
            cancel_token: Optional caller cancellation token

        Yields:
            InternalStreamEvent objects, ending with a ResultEvent or ErrorEvent

        Raises:
            ProviderError: Classified failure annotated with profile identity
        """
        ...

    @abstractmethod
    async def detect_installation(self) -> InstallationStatus:
        """Check if the provider is installed and authenticated."""
        ...

    @abstractmethod
    def get_available_models(self) -> List[ModelDefinition]:
        """Get the models this provider can serve."""
        ...

    @abstractmethod
    def supports_feature(self, feature: str) -> bool:
        """Check if the provider supports a feature ('tools', 'text', 'vision', 'thinking')."""
        ...
