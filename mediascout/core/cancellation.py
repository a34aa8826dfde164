"""
Cancellation - Cooperative cancellation tokens and timeout racing.

Every extraction operation carries a :class:`CancellationToken`. Awaited
work is raced against the operation's deadline and the token; the loser
is cancelled so in-flight fetches abort instead of leaking.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

from mediascout.core.exceptions import ExtractionCancelledError, ModuleTimeoutError


logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Caller-owned flag that aborts an extraction cooperatively.

    Chunked loops poll :meth:`raise_if_cancelled`; awaited calls race
    against :meth:`wait` through :func:`race`.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[["CancellationToken"], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """
        Request cancellation. Subsequent calls are ignored.

        Args:
            reason: Optional description shown in diagnostics
        """
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancellation requested: {reason or 'no reason given'}")

        for callback in self._callbacks:
            callback(self)
        self._callbacks.clear()

    def add_callback(self, callback: Callable[["CancellationToken"], None]) -> None:
        """Run ``callback`` on cancellation (immediately if already cancelled)."""
        if self.cancelled:
            callback(self)
        else:
            self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        """
        Raise if cancellation was requested.

        Raises:
            ExtractionCancelledError: If the token is cancelled
        """
        if self.cancelled:
            raise ExtractionCancelledError(reason=self._reason)

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


def _discard_result(future: "asyncio.Future[Any]") -> None:
    """Retrieve an abandoned future's outcome so it is never reported as unhandled."""
    if not future.cancelled():
        exc = future.exception()
        if exc is not None:
            logger.debug(f"Abandoned call finished with {type(exc).__name__}: {exc}")


async def race(
    awaitable: Awaitable[Any],
    timeout: Optional[float] = None,
    token: Optional[CancellationToken] = None,
    label: str = "operation",
    module_id: Optional[str] = None,
) -> Any:
    """
    Await work while racing it against a deadline and a cancellation token.

    The losing side is abandoned: the work is cancelled (which aborts
    aiohttp requests), and work already running in a worker thread is
    simply no longer awaited.

    Args:
        awaitable: Coroutine or future doing the real work
        timeout: Deadline in seconds (None waits indefinitely)
        token: Optional cancellation token
        label: Name used in error messages
        module_id: Module whose call is being raced, for diagnostics

    Returns:
        The result of ``awaitable``

    Raises:
        ModuleTimeoutError: If the deadline passes first
        ExtractionCancelledError: If the token is cancelled first
    """
    if token is not None and token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_waiter: Optional[asyncio.Task] = None
    if token is not None:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    task.add_done_callback(_discard_result)

    if token is not None and token.cancelled:
        logger.debug(f"{label} abandoned after cancellation")
        raise ExtractionCancelledError(f"{label} cancelled", reason=token.reason)

    logger.warning(f"{label} timed out after {timeout}s")
    raise ModuleTimeoutError(f"{label} timed out after {timeout}s", module_id=module_id, timeout=timeout)


# Export cancellation primitives
__all__ = ["CancellationToken", "race"]
