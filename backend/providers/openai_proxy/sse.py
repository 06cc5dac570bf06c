"""
Incremental decoder for Server-Sent-Events bodies.

Only ``data:`` fields matter for chat completion streams. The body arrives
in arbitrary slices, so a line can be split across reads; the decoder keeps
the incomplete tail until the next read completes it.
"""

from typing import List

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """Turns body text slices into complete ``data:`` payloads.

    Usage:
        decoder = SSEDecoder()
        for text in body_slices:
            for payload in decoder.feed(text):
                ...
        for payload in decoder.flush():
            ...
    """

    def __init__(self):
        self._buffer = ""

    def feed(self, text: str) -> List[str]:
        """Add text and return the payloads of every line it completed."""
        self._buffer += text
        lines = self._buffer.split("\n")
        # The last element is an incomplete line (or "" after a trailing newline)
        self._buffer = lines.pop()
        return self._payloads(lines)

    def flush(self) -> List[str]:
        """Return the payload of a final line that had no trailing newline."""
        remainder, self._buffer = self._buffer, ""
        return self._payloads([remainder]) if remainder else []

    @staticmethod
    def _payloads(lines: List[str]) -> List[str]:
        payloads = []
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX) :]
            if data == DONE_SENTINEL:
                continue
            payloads.append(data)
        return payloads
