"""Deadline and abort handling for a single network call."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..exceptions import RequestAbortedError, RequestTimeoutError

T = TypeVar("T")

TIMEOUT_REASON = "timeout"


class AbortSignal:
    """One-shot cancellation flag.

    ``abort`` only has an effect the first time it is called; the first reason
    wins. A signal created with a ``parent`` is aborted together with the
    parent, while aborting the child leaves the parent untouched.
    """

    __slots__ = ("_event", "_reason", "_children", "_parent")

    def __init__(self, parent: AbortSignal | None = None) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._children: list[AbortSignal] = []
        self._parent = parent
        if parent is not None:
            if parent.aborted:
                self.abort(parent.reason or "aborted")
            else:
                parent._children.append(self)

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def abort(self, reason: str = "aborted") -> bool:
        """Fire the signal; returns ``False`` if it had already fired."""

        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        children, self._children = self._children, []
        for child in children:
            child.abort(reason)
        return True

    def detach(self) -> None:
        """Stop following the parent signal."""

        if self._parent is not None:
            if self in self._parent._children:
                self._parent._children.remove(self)
            self._parent = None

    async def wait(self) -> None:
        await self._event.wait()


async def run_with_timeout(
    call: Callable[[], Awaitable[T]],
    timeout_ms: int,
    signal: AbortSignal | None = None,
    *,
    label: str = "request",
) -> T:
    """Run ``call`` until it finishes, the deadline passes or ``signal`` fires.

    A fresh child signal is created for the attempt so that the deadline only
    aborts this call, while an abort of ``signal`` reaches it as well.
    """

    attempt = AbortSignal(parent=signal)
    if attempt.aborted:
        attempt.detach()
        raise RequestAbortedError(f"{label} aborted: {attempt.reason}")

    task = asyncio.ensure_future(call())
    waiter = asyncio.ensure_future(attempt.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter},
            timeout=timeout_ms / 1000,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if task in done:
            return task.result()
        if not done:
            attempt.abort(TIMEOUT_REASON)

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if attempt.reason == TIMEOUT_REASON:
            raise RequestTimeoutError(f"{label} timed out after {timeout_ms}ms")
        raise RequestAbortedError(f"{label} aborted: {attempt.reason}")
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()
        attempt.detach()


__all__ = ["AbortSignal", "TIMEOUT_REASON", "run_with_timeout"]
