"""
Query endpoints.

POST /api/query streams normalized provider events as Server-Sent Events,
walking the fallback chain for the requested model. POST /api/query/complete
runs the same request to completion and returns only the final result.
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from core import get_settings
from core.dependencies import get_fallback_executor, get_profile_service
from core.exceptions import UpstreamError
from core.profile_service import ProviderProfileService
from core.sse import generate_sse_events, stream_to_channel
from domain.provider_profile import CamelModel
from domain.streaming import ErrorEvent, InternalStreamEvent, ResultEvent
from fastapi import APIRouter, Depends, HTTPException
from providers.base import AIProvider, QueryRequest
from providers.cancellation import CancellationToken
from providers.fallback import FallbackExecutor, parse_profile_model_id
from sse_starlette.sse import EventSourceResponse

logger = logging.getLogger("QueryRouter")

router = APIRouter()


class QueryBody(CamelModel):
    """Request body shared by both query endpoints."""

    prompt: Union[str, List[Dict[str, Any]]]
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    max_turns: Optional[int] = None
    allowed_tools: Optional[List[str]] = None

    def to_request(self, model: str) -> QueryRequest:
        return QueryRequest(
            prompt=self.prompt,
            model=model,
            system_prompt=self.system_prompt,
            max_turns=self.max_turns,
            allowed_tools=self.allowed_tools,
        )


class QueryResult(CamelModel):
    session_id: str
    result: str
    subtype: str


async def _open_stream(
    body: QueryBody,
    service: ProviderProfileService,
    executor: FallbackExecutor,
    cancel_token: CancellationToken,
) -> AsyncIterator[InternalStreamEvent]:
    """Pick the event source for a request.

    ``profile:<id>/<model>`` ids go straight to that profile without fallback;
    anything else walks the fallback chain.
    """
    model_id = body.model or get_settings().claude_model
    profiles = await service.get_routing_profiles()

    explicit = parse_profile_model_id(model_id)
    if explicit is not None:
        profile_id, model = explicit
        if not any(p.id == profile_id for p in profiles):
            raise HTTPException(status_code=404, detail=f"Provider profile not found: {profile_id}")
        provider = executor.get_provider_for_model_with_profiles(model_id, profiles)
        logger.info(f"Query pinned to {provider.name} (model {model})")
        return provider.stream_query(body.to_request(model), cancel_token)

    return executor.stream_with_fallback(model_id, profiles, body.to_request(model_id), cancel_token)


@router.post("")
async def stream_query(
    body: QueryBody,
    service: ProviderProfileService = Depends(get_profile_service),
    executor: FallbackExecutor = Depends(get_fallback_executor),
):
    """Stream a query as SSE.

    Events (SSE event name = ``type``):
    - `assistant_text_delta` - New response text (incremental)
    - `assistant_tool_call` - The assistant requested a tool
    - `result` - Final accumulated text
    - `error` - The request failed (in-stream ErrorEvent or exhausted fallback)
    - `keepalive` - Periodic ping (every 30s)

    Returns:
        EventSourceResponse streaming provider events
    """
    cancel_token = CancellationToken()
    events = await _open_stream(body, service, executor, cancel_token)
    channel = stream_to_channel(events, maxsize=get_settings().event_channel_size)

    async def event_generator():
        """Generate SSE events for the client."""
        try:
            async for event in generate_sse_events(channel):
                yield {
                    "event": event.get("type", "message"),
                    "data": json.dumps(event),
                }
        except Exception as e:
            logger.error(f"SSE event generator error: {e}")
            raise
        finally:
            # Client went away or the stream ended: release the provider call
            cancel_token.cancel("Client disconnected")

    return EventSourceResponse(event_generator())


@router.post("/complete", response_model=QueryResult)
async def complete_query(
    body: QueryBody,
    service: ProviderProfileService = Depends(get_profile_service),
    executor: FallbackExecutor = Depends(get_fallback_executor),
):
    """Run a query to completion with fallback and return the final result.

    An in-stream error event counts as a failure of that provider, so the
    next provider in the chain is tried.
    """
    model_id = body.model or get_settings().claude_model
    profiles = await service.get_routing_profiles()
    explicit = parse_profile_model_id(model_id)
    request_model = explicit[1] if explicit is not None else model_id

    async def collect(provider: AIProvider) -> ResultEvent:
        stream = provider.stream_query(body.to_request(request_model))
        try:
            async for event in stream:
                if isinstance(event, ErrorEvent):
                    raise UpstreamError(
                        event.error, profile_id=event.profile_id, profile_name=event.profile_name
                    )
                if isinstance(event, ResultEvent):
                    return event
        finally:
            await stream.aclose()
        raise UpstreamError(f"{provider.name} ended without a result")

    if explicit is not None:
        if not any(p.id == explicit[0] for p in profiles):
            raise HTTPException(status_code=404, detail=f"Provider profile not found: {explicit[0]}")
        result = await collect(executor.get_provider_for_model_with_profiles(model_id, profiles))
    else:
        result = await executor.execute_with_fallback(model_id, profiles, collect)

    return QueryResult(session_id=result.session_id, result=result.result, subtype=result.subtype)
