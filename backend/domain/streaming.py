"""
Domain types for streaming responses.

Every provider, whatever its wire protocol, produces the same sequence of
events: zero or more text deltas and tool calls, then exactly one terminal
result or error event. Each event carries the provider session ID.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass
class AssistantTextDelta:
    """Event emitted when new assistant text is generated."""

    session_id: str
    text: str

    type: str = field(default="assistant_text_delta", init=False)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "session_id": self.session_id,
            "text": self.text,
        }


@dataclass
class AssistantToolCall:
    """Event emitted when the assistant requests a tool call.

    ``input`` is the parsed JSON arguments, or ``{"raw": <string>}`` when the
    provider sent arguments that are not valid JSON.
    """

    session_id: str
    tool_use_id: str
    name: str
    input: Any

    type: str = field(default="assistant_tool_call", init=False)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "session_id": self.session_id,
            "tool_use_id": self.tool_use_id,
            "name": self.name,
            "input": self.input,
        }


@dataclass
class ResultEvent:
    """Terminal event carrying the full accumulated response text."""

    session_id: str
    result: str
    subtype: str = "success"

    type: str = field(default="result", init=False)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "subtype": self.subtype,
            "session_id": self.session_id,
            "result": self.result,
        }


@dataclass
class ErrorEvent:
    """Terminal event for a failure reported inside the stream."""

    session_id: str
    error: str
    kind: str = "unknown"
    profile_id: Optional[str] = None
    profile_name: Optional[str] = None

    type: str = field(default="error", init=False)

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "session_id": self.session_id,
            "error": self.error,
            "kind": self.kind,
            "profile_id": self.profile_id,
            "profile_name": self.profile_name,
        }


# Type alias for all streaming events
InternalStreamEvent = Union[AssistantTextDelta, AssistantToolCall, ResultEvent, ErrorEvent]


def is_terminal(event: InternalStreamEvent) -> bool:
    """Check whether an event ends a stream."""
    return isinstance(event, (ResultEvent, ErrorEvent))
