"""Cooperative cancellation for a single in-flight request."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from chatadapter.errors import RequestCancelled

__all__ = ["CancellationToken", "RequestCancelled", "raise_if_cancelled", "run_cancellable"]

T = TypeVar("T")


class CancellationToken:
    """
    A one-shot cancellation flag backed by :class:`asyncio.Event`.

    The host calls :meth:`cancel`; request code checks :attr:`cancelled`
    between steps or races an awaitable against it with
    :func:`run_cancellable`.  Call :meth:`cancel` from the event loop thread
    (use ``loop.call_soon_threadsafe`` from other threads).
    """

    __slots__ = ("_event",)

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
        if self._event.is_set():
            raise RequestCancelled()


def raise_if_cancelled(token: CancellationToken | None) -> None:
    """Convenience helper raising when *token* has been signalled."""
    if token is not None:
        token.raise_if_cancelled()


async def run_cancellable(aw: Awaitable[T], token: CancellationToken | None) -> T:
    """
    Await *aw* unless *token* fires first.

    On cancellation the pending awaitable is cancelled (which aborts an
    in-flight HTTP read) and :class:`RequestCancelled` is raised.  If both
    finish in the same loop iteration the result wins.
    """
    if token is None:
        return await aw
    token.raise_if_cancelled()

    task = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise RequestCancelled()
