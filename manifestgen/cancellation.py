"""Cooperative cancellation for manifest executions.

A :class:`CancellationToken` is polled by the executor between stages and
raced against long awaits.  Cancelling never rolls anything back: files
written before the cancellation point stay on disk.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from manifestgen.manifest.errors import ExecutionCancelled

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal shared between coroutines.

    Child tokens are cancelled together with their parent; cancelling a
    child leaves the parent untouched.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._children: list[CancellationToken] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Signal cancellation. Calling it again has no effect."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._event is not None:
            self._event.set()
        for child in self._children:
            child.cancel()

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled whenever this one is."""
        token = CancellationToken()
        if self._cancelled:
            token.cancel()
        else:
            self._children.append(token)
        return token

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ExecutionCancelled()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self._cancelled:
            return
        # The event is created lazily so tokens can be built outside a loop.
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token is cancelled first.

        Raises:
            ExecutionCancelled: The token was cancelled before the awaitable
                finished; the awaitable is cancelled too.
        """
        work = asyncio.ensure_future(awaitable)
        if self._cancelled:
            work.cancel()
            raise ExecutionCancelled()
        waiter = asyncio.ensure_future(self.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        raise ExecutionCancelled()
