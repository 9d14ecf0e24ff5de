"""
Cooperative cancellation for outbound requests.

A `CancellationToken` is handed to a call by its owner; `cancel()` wakes anything
awaiting it. `run_cancellable` races a coroutine against the token and aborts
the coroutine's task when the token fires first.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from nearbyplaces.errors import RequestCancelled

T = TypeVar("T")


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled()


async def run_cancellable(aw: Awaitable[T], token: CancellationToken | None) -> T:
    """Await `aw`, raising `RequestCancelled` (and aborting `aw`) if `token` fires first."""
    if token is None:
        return await aw
    if token.cancelled:
        if asyncio.iscoroutine(aw):
            aw.close()
        raise RequestCancelled()

    work = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work.done():
        return work.result()

    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    raise RequestCancelled()
