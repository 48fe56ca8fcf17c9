"""Cooperative cancellation for one streaming call."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from chat_provider.core.errors import StreamCancelledError

T = TypeVar("T")


class CancelToken:
    """Set once by the caller; the read loop stops at the next await point."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise StreamCancelledError()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first, then raise StreamCancelledError."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise StreamCancelledError()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()
        if not work.done():
            work.cancel()
            try:
                await work
            except asyncio.CancelledError:
                pass
            raise StreamCancelledError()
        return work.result()
