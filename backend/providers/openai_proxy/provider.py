"""
OpenAI-compatible proxy provider.

Streams chat completions from any endpoint speaking the OpenAI wire format
(proxies, enterprise gateways, local LLM servers) and translates the SSE
body into internal stream events as it arrives.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, List, Optional

import httpx
from core import get_settings
from core.exceptions import ProtocolError
from domain.provider_profile import ProviderProfile
from domain.streaming import InternalStreamEvent

from providers.base import ModelDefinition, ProviderType, QueryRequest
from providers.cancellation import CancellationToken, RequestGuard
from providers.errors import annotate_error, error_from_response
from providers.profile_provider import ProfileBackedProvider

from .parser import ChatCompletionChunkParser
from .sse import SSEDecoder

logger = logging.getLogger("OpenAIProxyProvider")


class OpenAIProxyProvider(ProfileBackedProvider):
    """Routes requests through an OpenAI-compatible endpoint.

    Supports:
    - Custom base URLs and CA bundles
    - Model name mapping (local -> remote)
    - Streaming chat completions with text and tool-call deltas
    """

    NAME_PREFIX = "openai-proxy"
    # OpenAI-compatible servers vary a lot; stay conservative
    FEATURES = frozenset({"tools", "text"})
    MAPPED_SUPPORTS_VISION = False

    def __init__(self, profile: ProviderProfile, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(profile)
        self._transport = transport

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI_PROXY

    @staticmethod
    def build_messages(request: QueryRequest) -> List[dict]:
        """Optional system message followed by one user message."""
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt_text()})
        return messages

    def build_request_body(self, request: QueryRequest) -> dict:
        return {
            "model": self.remote_model(request.model),
            "messages": self.build_messages(request),
            "stream": True,
            "max_tokens": get_settings().openai_max_tokens,
        }

    async def stream_query(
        self,
        request: QueryRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[InternalStreamEvent]:
        """Stream one chat completion as internal events.

        Yields text deltas while the body is read, tool calls when the model
        finishes, and a final ResultEvent with the accumulated text.
        """
        settings = get_settings()
        body = self.build_request_body(request)
        logger.debug(f"Model mapping: {request.model} -> {body['model']} (profile: {self.profile.name})")

        parser = ChatCompletionChunkParser(session_id=f"openai-{int(time.time() * 1000)}")
        decoder = SSEDecoder()

        try:
            guard = RequestGuard(timeout_ms=self.profile.timeout, token=cancel_token)
            logger.info(f"Executing query via OpenAI proxy: {self.profile.name} ({self.profile.base_url})")

            async with httpx.AsyncClient(transport=self._transport, verify=self.tls_verify(), timeout=None) as client:
                http_request = client.build_request(
                    "POST",
                    f"{self.base_url}/v1/chat/completions",
                    json=body,
                    headers={"Authorization": f"Bearer {self.profile.api_key}"},
                )
                response = await guard.run(client.send(http_request, stream=True))
                try:
                    if not response.is_success:
                        await guard.run(response.aread())
                        raise error_from_response(
                            response.status_code,
                            response.reason_phrase,
                            response.text,
                            response.headers,
                            max_body_chars=settings.error_body_max_chars,
                            label="OpenAI API",
                        )

                    received_body = False
                    async for text in guard.iterate(response.aiter_text()):
                        received_body = received_body or bool(text)
                        for payload in decoder.feed(text):
                            for event in self._parse_payload(parser, payload):
                                yield event
                    for payload in decoder.flush():
                        for event in self._parse_payload(parser, payload):
                            yield event

                    if not received_body:
                        raise ProtocolError("No response body received from OpenAI proxy")
                finally:
                    await response.aclose()

            yield parser.result_event()

        except Exception as e:
            error = annotate_error(e, self.profile)
            logger.error(
                f"stream_query() failed: profile={self.profile.name} base_url={self.profile.base_url} "
                f"kind={error.kind.value} error={error.message}"
            )
            raise error from e

    @staticmethod
    def _parse_payload(parser: ChatCompletionChunkParser, payload: str) -> List[InternalStreamEvent]:
        try:
            return parser.parse(payload)
        except ValueError as e:
            logger.warning(f"Failed to parse SSE chunk: {payload[:200]} ({e})")
            return []

    def default_models(self) -> List[ModelDefinition]:
        return [
            self._default_model("gpt-4o", "GPT-4o", 128000, 16384, True, "premium"),
            self._default_model("gpt-4o-mini", "GPT-4o Mini", 128000, 16384, True, "standard"),
            self._default_model("gpt-3.5-turbo", "GPT-3.5 Turbo", 16385, 4096, False, "basic"),
        ]
