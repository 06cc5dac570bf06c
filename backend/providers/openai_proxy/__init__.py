"""
OpenAI-compatible proxy provider.

Speaks the chat completions wire format:
- POST {base_url}/v1/chat/completions with a bearer token
- SSE body decoded by SSEDecoder, chunks parsed by ChatCompletionChunkParser
"""

from .parser import ChatCompletionChunkParser, ToolCallBuffer
from .provider import OpenAIProxyProvider
from .sse import SSEDecoder

__all__ = [
    "ChatCompletionChunkParser",
    "OpenAIProxyProvider",
    "SSEDecoder",
    "ToolCallBuffer",
]
