"""
Chat completion chunk parser.

Converts decoded ``data:`` payloads into internal stream events. The parser
is stateful for one response: it accumulates the assistant text and the
tool-call fragments that arrive split across chunks.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List

from domain.streaming import AssistantTextDelta, AssistantToolCall, InternalStreamEvent, ResultEvent

TOOL_CALL_FINISH_REASONS = ("stop", "tool_calls")


def _is_tool_delta(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    index = value.get("index", 0)
    if not isinstance(index, int) or isinstance(index, bool):
        return False
    function = value.get("function") or {}
    if not isinstance(function, dict):
        return False
    fields = (value.get("id"), function.get("name"), function.get("arguments"))
    return all(field is None or isinstance(field, str) for field in fields)


@dataclass
class ToolCallBuffer:
    """Fragments of one streamed tool call, keyed by its index."""

    id: str = ""
    name: str = ""
    arguments: str = ""

    def parsed_arguments(self) -> Any:
        """Arguments as JSON, or ``{"raw": <string>}`` when they don't parse."""
        try:
            return json.loads(self.arguments)
        except ValueError:
            return {"raw": self.arguments}


class ChatCompletionChunkParser:
    """Stateful parser for one chat completion stream."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._text_parts: List[str] = []
        self._tool_calls: Dict[int, ToolCallBuffer] = {}

    @property
    def text(self) -> str:
        """Full assistant text received so far."""
        return "".join(self._text_parts)

    def parse(self, payload: str) -> List[InternalStreamEvent]:
        """Parse one data payload.

        Raises:
            ValueError: The payload is not a well-formed chunk. Nothing is
                recorded from a rejected payload.
        """
        chunk = json.loads(payload)
        if not isinstance(chunk, dict):
            raise ValueError(f"Expected a JSON object, got {type(chunk).__name__}")
        choices = chunk.get("choices")
        if not isinstance(choices, list):
            raise ValueError("Chunk has no choices list")
        if not choices:
            return []

        choice = choices[0]
        if not isinstance(choice, dict):
            raise ValueError("Choice is not an object")
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise ValueError("Choice delta is not an object")
        tool_deltas = delta.get("tool_calls") or []
        if not isinstance(tool_deltas, list) or not all(_is_tool_delta(d) for d in tool_deltas):
            raise ValueError("Malformed tool_calls delta")

        events: List[InternalStreamEvent] = []

        content = delta.get("content")
        if isinstance(content, str) and content:
            self._text_parts.append(content)
            events.append(AssistantTextDelta(session_id=self.session_id, text=content))

        for tool_delta in tool_deltas:
            self._merge_tool_delta(tool_delta)

        if choice.get("finish_reason") in TOOL_CALL_FINISH_REASONS:
            events.extend(self._drain_tool_calls())

        return events

    def _merge_tool_delta(self, tool_delta: dict) -> None:
        buffer = self._tool_calls.setdefault(tool_delta.get("index", 0), ToolCallBuffer())
        if tool_delta.get("id"):
            buffer.id = tool_delta["id"]
        function = tool_delta.get("function") or {}
        if function.get("name"):
            buffer.name = function["name"]
        if function.get("arguments"):
            buffer.arguments += function["arguments"]

    def _drain_tool_calls(self) -> List[AssistantToolCall]:
        # Buffers are cleared once emitted so a second finish chunk can't repeat them
        events = [
            AssistantToolCall(
                session_id=self.session_id,
                tool_use_id=buffer.id,
                name=buffer.name,
                input=buffer.parsed_arguments(),
            )
            for buffer in self._tool_calls.values()
            if buffer.id and buffer.name
        ]
        self._tool_calls.clear()
        return events

    def result_event(self) -> ResultEvent:
        return ResultEvent(session_id=self.session_id, result=self.text)
