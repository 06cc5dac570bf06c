"""
Claude SDK query wrapper.

Runs one ``claude_agent_sdk.query`` call under a RequestGuard so that
cancellation and timeout abort the in-flight read, and always closes the
SDK stream so the CLI subprocess is torn down.
"""

import logging
from typing import Any, AsyncIterator, Union

from claude_agent_sdk import ClaudeAgentOptions, query

from domain.streaming import ErrorEvent, InternalStreamEvent, ResultEvent, is_terminal

from providers.base import QueryRequest
from providers.cancellation import RequestGuard
from providers.errors import classify_message

from .parser import ClaudeStreamParser

logger = logging.getLogger("ClaudeClient")


async def _multi_part_prompt(parts: list) -> AsyncIterator[dict]:
    """Wrap content parts (text and images) as a single streamed user message."""
    yield {
        "type": "user",
        "session_id": "",
        "message": {"role": "user", "content": parts},
        "parent_tool_use_id": None,
    }


def build_prompt_payload(request: QueryRequest) -> Union[str, AsyncIterator[dict]]:
    """Plain prompts go as strings; list prompts as one multi-part message."""
    if isinstance(request.prompt, list):
        return _multi_part_prompt(request.prompt)
    return request.prompt


async def stream_sdk_messages(
    request: QueryRequest,
    options: ClaudeAgentOptions,
    guard: RequestGuard,
) -> AsyncIterator[Any]:
    """Yield raw SDK messages for one query.

    Args:
        request: The normalized request (supplies the prompt)
        options: Options built for this query
        guard: Cancellation scope; every read is raced against it

    Yields:
        SDK message objects (StreamEvent, AssistantMessage, SystemMessage, ResultMessage)
    """
    stream = query(prompt=build_prompt_payload(request), options=options)
    try:
        async for message in guard.iterate(stream):
            yield message
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except RuntimeError as e:
                # Closing a stream interrupted mid-read can race the SDK's own cleanup
                logger.debug(f"Error closing SDK stream: {e}")


async def stream_sdk_events(
    request: QueryRequest,
    options: ClaudeAgentOptions,
    guard: RequestGuard,
) -> AsyncIterator[InternalStreamEvent]:
    """Yield normalized events for one query, always ending with a result event.

    An error result from the SDK is raised as a classified ProviderError so
    callers see the same failure path as a transport error.
    """
    parser = ClaudeStreamParser()
    messages = stream_sdk_messages(request, options, guard)
    try:
        async for message in messages:
            for event in parser.parse(message):
                if isinstance(event, ErrorEvent):
                    raise classify_message(event.error)
                yield event
                if is_terminal(event):
                    return
    finally:
        await messages.aclose()
    # The CLI exited without a ResultMessage; close the stream with what we have
    yield ResultEvent(session_id=parser.session_id, result=parser.text)
