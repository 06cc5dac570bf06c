"""
Claude SDK stream parser.

Normalizes SDK messages into internal stream events so SDK-backed
providers look exactly like the HTTP translators to their callers.
"""

import logging
from typing import Any, List, Optional

from claude_agent_sdk import (
    AssistantMessage,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolUseBlock,
)
from claude_agent_sdk.types import StreamEvent

from domain.streaming import (
    AssistantTextDelta,
    AssistantToolCall,
    ErrorEvent,
    InternalStreamEvent,
    ResultEvent,
)

logger = logging.getLogger("ClaudeStreamParser")


class ClaudeStreamParser:
    """Stateful parser for one SDK query.

    SDK Message Types:
        - StreamEvent: Partial message updates with raw Anthropic API events
        - AssistantMessage: content=[TextBlock, ThinkingBlock, ToolUseBlock, ...]
        - SystemMessage: subtype='init', data={'session_id': ...}
        - ResultMessage: Final result with session_id, is_error, result

    Text that already arrived as partial StreamEvents is not emitted again
    when the complete AssistantMessage for the same turn follows.
    """

    def __init__(self, session_id: str = ""):
        self.session_id = session_id
        self._text_parts: List[str] = []
        self._streamed_current_message = False

    @property
    def text(self) -> str:
        """Full assistant text received so far."""
        return "".join(self._text_parts)

    def _track_session(self, session_id: Optional[str]) -> None:
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            logger.debug(f"Extracted session_id: {session_id}")

    def parse(self, message: Any) -> List[InternalStreamEvent]:
        """Convert one SDK message into zero or more internal events."""
        if isinstance(message, StreamEvent):
            self._track_session(message.session_id)
            return self._parse_stream_event(message.event)

        if isinstance(message, SystemMessage):
            if message.subtype == "rate_limit":
                logger.warning(f"Rate limited by API (concurrent usage?): {message.data}")
            elif isinstance(message.data, dict):
                self._track_session(message.data.get("session_id"))
            return []

        if isinstance(message, AssistantMessage):
            return self._parse_assistant_message(message)

        if isinstance(message, ResultMessage):
            self._track_session(message.session_id)
            if message.is_error:
                return [
                    ErrorEvent(
                        session_id=self.session_id,
                        error=message.result or f"Query failed: {message.subtype}",
                        kind="upstream",
                    )
                ]
            result = message.result if message.result is not None else self.text
            return [ResultEvent(session_id=self.session_id, result=result, subtype=message.subtype)]

        logger.debug(f"Ignoring SDK message: {type(message).__name__}")
        return []

    def _parse_stream_event(self, event: Any) -> List[InternalStreamEvent]:
        if not isinstance(event, dict):
            return []

        event_type = event.get("type", "")
        if event_type == "message_start":
            self._streamed_current_message = False
            return []

        if event_type == "content_block_delta":
            delta = event.get("delta", {})
            if delta.get("type") == "text_delta" and delta.get("text"):
                self._streamed_current_message = True
                self._text_parts.append(delta["text"])
                return [AssistantTextDelta(session_id=self.session_id, text=delta["text"])]

        return []

    def _parse_assistant_message(self, message: AssistantMessage) -> List[InternalStreamEvent]:
        events: List[InternalStreamEvent] = []
        skip_text = self._streamed_current_message

        for block in message.content:
            if isinstance(block, ToolUseBlock):
                events.append(
                    AssistantToolCall(
                        session_id=self.session_id,
                        tool_use_id=block.id,
                        name=block.name,
                        input=block.input,
                    )
                )
            elif isinstance(block, TextBlock) and block.text and not skip_text:
                self._text_parts.append(block.text)
                events.append(AssistantTextDelta(session_id=self.session_id, text=block.text))

        self._streamed_current_message = False
        return events
