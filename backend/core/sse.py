"""
Event channels for streaming provider output to Server-Sent Events clients.

A producer task drains a provider event stream onto a bounded
asyncio.Queue; the consumer (an SSE response) reads from the channel. When
the producer stops, the channel records why: the stream completed, the
stream failed, or the request was cancelled.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Optional

from core.exceptions import RequestCancelledError

logger = logging.getLogger("EventChannel")


class CloseReason(str, Enum):
    """Why a channel stopped producing events."""

    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class EventChannel:
    """Bounded single-producer, single-consumer event channel.

    Iterating the channel yields every event the producer sent. Iteration
    ends normally on COMPLETED and CANCELLED closes; an ERROR close re-raises
    the producer's exception once the queued events have been consumed.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()
        self._producer: Optional[asyncio.Task] = None
        self.close_reason: Optional[CloseReason] = None
        self.error: Optional[BaseException] = None

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    async def send(self, event: Any) -> None:
        """Queue an event, waiting while the channel is full."""
        await self._queue.put(event)

    def close(self, reason: CloseReason, error: Optional[BaseException] = None) -> None:
        """Mark the channel closed. Only the first close counts."""
        if self._closed.is_set():
            return
        self.close_reason = reason
        self.error = error
        self._closed.set()
        logger.debug(f"Channel closed: {reason.value}")

    def attach_producer(self, task: asyncio.Task) -> None:
        self._producer = task

    async def aclose(self) -> None:
        """Stop the producer (if still running) and wait for it to finish."""
        if self._producer is not None and not self._producer.done():
            self._producer.cancel()
            await asyncio.gather(self._producer, return_exceptions=True)
        self.close(CloseReason.CANCELLED)

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> Any:
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._closed.is_set():
                if self.close_reason == CloseReason.ERROR and self.error is not None:
                    raise self.error
                raise StopAsyncIteration

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                done, pending = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for waiter in (getter, closer):
                    if not waiter.done():
                        waiter.cancel()
                await asyncio.gather(getter, closer, return_exceptions=True)

            if getter in done:
                return getter.result()
            # Closed: loop to drain anything still queued


async def _produce(channel: EventChannel, events: AsyncIterator[Any]) -> None:
    try:
        async for event in events:
            await channel.send(event)
    except asyncio.CancelledError:
        channel.close(CloseReason.CANCELLED)
        raise
    except RequestCancelledError as e:
        channel.close(CloseReason.CANCELLED, e)
    except Exception as e:
        logger.debug(f"Producer failed: {e}")
        channel.close(CloseReason.ERROR, e)
    else:
        channel.close(CloseReason.COMPLETED)


def stream_to_channel(events: AsyncIterator[Any], maxsize: int = 100) -> EventChannel:
    """Start a producer task draining ``events`` onto a new bounded channel.

    Must be called from a running event loop. Call ``aclose()`` on the
    returned channel when the consumer goes away early.
    """
    channel = EventChannel(maxsize=maxsize)
    channel.attach_producer(asyncio.create_task(_produce(channel, events)))
    return channel


_END = object()


async def _next_or_end(iterator: AsyncIterator[Any]) -> Any:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _END


async def generate_sse_events(
    channel: EventChannel,
    keepalive_interval: float = 30.0,
) -> AsyncIterator[dict]:
    """Generate SSE events for a channel.

    This is an async generator that yields event dicts from the channel,
    a final ``error`` event if the producer failed, and periodic keepalive
    pings while the provider is quiet. The channel is closed on exit.

    Args:
        channel: Channel fed by stream_to_channel()
        keepalive_interval: Seconds between keepalive pings (default 30s)

    Yields:
        Event dicts with a ``type`` key
    """
    iterator = channel.__aiter__()
    pending: Optional[asyncio.Future] = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(_next_or_end(iterator))
            done, _ = await asyncio.wait({pending}, timeout=keepalive_interval)
            if not done:
                yield {"type": "keepalive", "timestamp": asyncio.get_running_loop().time()}
                continue

            task, pending = pending, None
            try:
                event = task.result()
            except Exception as e:
                to_dict = getattr(e, "to_dict", None)
                details = to_dict() if to_dict is not None else {"kind": "unknown", "message": str(e)}
                yield {"type": "error", **details}
                return
            if event is _END:
                return
            yield event.to_dict()
    except asyncio.CancelledError:
        logger.debug("SSE event generator cancelled")
        raise
    finally:
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        await channel.aclose()
