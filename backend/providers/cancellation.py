"""
Cooperative cancellation for streaming provider calls.

A streaming call can be stopped two ways: the caller cancels its
CancellationToken, or the profile timeout expires. RequestGuard races every
network read against both, so whichever fires first aborts the read and the
stream ends with RequestCancelledError or ProviderTimeoutError respectively.
Events already yielded stay delivered; nothing is produced afterwards.
"""

import asyncio
import logging
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Optional

from core.exceptions import ProviderTimeoutError, RequestCancelledError

logger = logging.getLogger("RequestGuard")


class CancellationToken:
    """Caller-owned cancellation signal, shareable across providers."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Request cancelled by caller") -> None:
        """Signal cancellation. Only the first reason is kept."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def wait(self) -> None:
        """Wait until the token is cancelled."""
        await self._event.wait()


async def _anext(iterator: AsyncIterator[Any]) -> Any:
    return await iterator.__anext__()


class RequestGuard:
    """Combines a caller token and a timeout into one cancellation scope.

    The deadline is fixed when the guard is created, so the timeout caps the
    whole call rather than each individual read.

    Usage:
        guard = RequestGuard(timeout_ms=30000, token=token)
        response = await guard.run(client.send(request, stream=True))
        async for chunk in guard.iterate(response.aiter_text()):
            ...
    """

    def __init__(self, timeout_ms: Optional[int] = None, token: Optional[CancellationToken] = None):
        self._timeout_ms = timeout_ms
        self._token = token
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + timeout_ms / 1000 if timeout_ms else None

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a timeout."""
        if self._deadline is None:
            return None
        return self._deadline - asyncio.get_running_loop().time()

    def _timeout_error(self) -> ProviderTimeoutError:
        return ProviderTimeoutError(f"Request timed out after {self._timeout_ms}ms")

    def _cancelled_error(self) -> RequestCancelledError:
        reason = self._token.reason if self._token is not None else None
        return RequestCancelledError(reason or "Request cancelled by caller")

    def check(self) -> None:
        """Raise immediately if the token already fired or the deadline passed."""
        if self._token is not None and self._token.is_cancelled:
            raise self._cancelled_error()
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise self._timeout_error()

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """Await one operation, aborting it on cancellation or timeout.

        Raises:
            RequestCancelledError: The caller token fired first
            ProviderTimeoutError: The deadline passed first
        """
        try:
            self.check()
        except Exception:
            # Never started; close the coroutine so it isn't reported as unawaited
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise

        work = asyncio.ensure_future(awaitable)
        waiters = {work}
        cancel_waiter: Optional[asyncio.Future] = None
        if self._token is not None:
            cancel_waiter = asyncio.ensure_future(self._token.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.remaining(), return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if work in done:
            return work.result()
        if cancel_waiter is not None and cancel_waiter in done:
            logger.debug("Aborting in-flight read: caller cancelled")
            raise self._cancelled_error()
        logger.debug(f"Aborting in-flight read: timeout after {self._timeout_ms}ms")
        raise self._timeout_error()

    async def iterate(self, source: AsyncIterable[Any]) -> AsyncIterator[Any]:
        """Iterate an async source with every read guarded by run()."""
        iterator = source.__aiter__()
        while True:
            try:
                item = await self.run(_anext(iterator))
            except StopAsyncIteration:
                return
            yield item
