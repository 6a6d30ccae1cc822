"""Cooperative cancellation for in-flight onboarding requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from core.errors import OperationCancelledError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CancellationToken:
    """Signal shared between the owner of a request and the request itself.

    The token is not bound to an event loop: the wizard UI may run each
    interaction under a fresh ``asyncio.run`` while the token lives in the
    session for the whole flow.
    """

    def __init__(self, *, parent: CancellationToken | None = None) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], object]] = []
        if parent is not None:
            if parent.cancelled:
                self._cancelled = True
                self._reason = parent.reason
            else:
                parent.add_callback(lambda: self.cancel(parent.reason))

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the token and notify registered callbacks once."""

        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], object]) -> Callable[[], None]:
        """Register ``callback`` for cancellation and return an unregister hook."""

        if self._cancelled:
            callback()
            return lambda: None
        self._callbacks.append(callback)

        def _remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return _remove

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelledError(self._reason or "Operation cancelled")

    def child(self) -> CancellationToken:
        """Return a token that is cancelled together with this one."""

        return CancellationToken(parent=self)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` and abort it as soon as the token is cancelled.

        Raises:
            OperationCancelledError: The token was cancelled before or while
                the awaitable ran. Any late result is discarded.
        """

        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        remove = self.add_callback(task.cancel)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                logger.debug("Request cancelled: %s", self._reason or "no reason given")
                raise OperationCancelledError(self._reason or "Operation cancelled") from None
            raise
        finally:
            remove()
        if self._cancelled:
            raise OperationCancelledError(self._reason or "Operation cancelled")
        return result


__all__ = ["CancellationToken"]
