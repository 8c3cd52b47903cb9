"""Serialized and debounced execution of asynchronous call bodies."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Self

from .async_utils import async_timeout, resolve
from .call_ids import safe_increment

type CallBody[T] = Callable[[AsyncCallQueue, int], T | Awaitable[T]]

logger = logging.getLogger(__name__)


class AsyncCallQueue:
    """Prevent concurrent execution of async call bodies and debounce delayed calls.

    Every submission gets a new call id. Bodies submitted with queue_call() run one
    at a time, in submission order, behind an asyncio.Lock. Bodies submitted with
    delay_call() run after a delay that restarts on every new submission, so only
    the last call of a burst executes.

    A running body can poll has_calls_waiting_after() with its own call id and
    return early once a newer call has been submitted.

    Call dispose() exactly once when the queue is no longer needed.

    Example:
        queue = AsyncCallQueue(name="search")

        async def search(queue: AsyncCallQueue, call_id: int) -> list[str]:
            results = []
            for page in range(10):
                results.extend(await fetch_page(page))
                if queue.has_calls_waiting_after(call_id):
                    break
            return results

        results = await queue.queue_call(search, timeout=5.0)

        # Only the last keystroke within 0.3 seconds triggers a save
        queue.delay_call(lambda q, call_id: save_draft(), delay=0.3)
    """

    def __init__(self, debug_mode: bool = False, name: str | None = None) -> None:
        """Initialize AsyncCallQueue.

        Args:
            debug_mode: If True, logs scheduling diagnostics at DEBUG level
            name: Optional name for the queue, used in log records and task names
        """
        self.debug_mode = debug_mode
        self.name = name
        self._latest_call_id = 0
        self._lock = asyncio.Lock()
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._disposed = False

    @property
    def latest_call_id(self) -> int:
        """Id of the most recently submitted call, 0 before any submission."""
        return self._latest_call_id

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def has_pending_delayed_call(self) -> bool:
        """True while a delay_call() timer is armed and has not fired yet."""
        return self._timer is not None

    def has_calls_waiting_after(self, call_id: int) -> bool:
        """Return True if any call has been submitted after the call with call_id.

        Meant to be polled from inside a long-running body, which may then stop
        its work early. The queue never interrupts a body by itself.
        """
        return call_id != self._latest_call_id

    def queue_call[T](self, body: CallBody[T], timeout: float | None = None) -> asyncio.Task[T]:
        """Call body as soon as every previously queued call has finished.

        The call id is assigned and any pending delayed call is cancelled before this
        method returns. The returned task waits for the lock in FIFO order, then runs
        body(self, call_id) and resolves to its result.

        Args:
            body: Function of (queue, call_id) returning a value or an awaitable
            timeout: Optional limit in seconds for waiting on previous calls

        Returns:
            Task resolving to the result of body. It fails with TimeoutError if the
            lock was not acquired within timeout (body is not called), or with the
            exception raised by body.

        Raises:
            RuntimeError: If there is no running event loop
        """
        loop = asyncio.get_running_loop()
        call_id = self._prepare_for_new_call()

        if self._lock.locked():
            self._debug("Waiting for previous call(s) to finish before calling %d", call_id)

        return self._spawn(loop, self._run_queued(body, call_id, timeout), call_id)

    def delay_call(
        self,
        body: CallBody[Any],
        delay: float = 1.0,
        prevent_concurrent_access: bool = True,
    ) -> None:
        """Call body after delay seconds unless another call is submitted first.

        Any later queue_call() or delay_call() cancels this call if its delay has not
        elapsed yet. The result of body is discarded, and an exception raised by body
        is logged.

        Args:
            body: Function of (queue, call_id) returning a value or an awaitable
            delay: Seconds to wait before calling; 0 calls without a timer
            prevent_concurrent_access: If True, body runs under the queue lock. When
                the timer fires while another call holds the lock, the delay restarts.

        Raises:
            ValueError: If delay is negative
            RuntimeError: If there is no running event loop
        """
        if delay < 0:
            raise ValueError("Delay must not be negative")

        loop = asyncio.get_running_loop()
        self._prepare_for_new_call()

        if delay == 0:
            self._call(loop, body, delay, prevent_concurrent_access)
        else:
            self._timer = loop.call_later(delay, self._on_timer, loop, body, delay, prevent_concurrent_access)

    def dispose(self) -> None:
        """Cancel any pending delayed call and make further delayed calls no-ops.

        A body that is already running is not affected.

        Raises:
            RuntimeError: If the queue has already been disposed
        """
        if self._disposed:
            raise RuntimeError("This AsyncCallQueue has already been disposed.")

        self._disposed = True
        self._cancel_timer()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: object) -> None:
        if not self._disposed:
            self.dispose()

    def __repr__(self) -> str:
        return (
            f"AsyncCallQueue(name={self.name!r}, "
            f"latest_call_id={self._latest_call_id}, "
            f"disposed={self._disposed})"
        )

    def _prepare_for_new_call(self) -> int:
        self._latest_call_id = safe_increment(self._latest_call_id)

        if self._timer is not None:
            self._debug("Cancelled previous delayed call for new call %d", self._latest_call_id)
            self._cancel_timer()

        return self._latest_call_id

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(
        self,
        loop: asyncio.AbstractEventLoop,
        body: CallBody[Any],
        delay: float,
        prevent_concurrent_access: bool,
    ) -> None:
        self._timer = None
        self._call(loop, body, delay, prevent_concurrent_access)

    def _call(
        self,
        loop: asyncio.AbstractEventLoop,
        body: CallBody[Any],
        delay: float,
        prevent_concurrent_access: bool,
    ) -> None:
        if self._disposed:
            return

        if delay > 0 and prevent_concurrent_access and self._lock.locked():
            self._debug("Lock is busy, trying call %d again in %s seconds", self._latest_call_id, delay)
            self.delay_call(body, delay=delay, prevent_concurrent_access=True)
        elif prevent_concurrent_access:
            self._spawn(loop, self._run_delayed(body), self._latest_call_id)
        else:
            self._call_without_lock(loop, body)

    async def _run_queued[T](self, body: CallBody[T], call_id: int, timeout: float | None) -> T:
        async with async_timeout(timeout):
            await self._lock.acquire()

        try:
            return await resolve(body(self, call_id))
        finally:
            self._lock.release()

    async def _run_delayed(self, body: CallBody[Any]) -> None:
        async with self._lock:
            # The queue may have been disposed while waiting for the lock
            if self._disposed:
                return

            call_id = self._latest_call_id
            try:
                await resolve(body(self, call_id))
            except Exception:
                self._log_delayed_failure(call_id)

    def _call_without_lock(self, loop: asyncio.AbstractEventLoop, body: CallBody[Any]) -> None:
        call_id = self._latest_call_id
        try:
            result = body(self, call_id)
        except Exception:
            self._log_delayed_failure(call_id)
            return

        if inspect.isawaitable(result):
            self._spawn(loop, self._await_detached(result, call_id), call_id)

    async def _await_detached(self, awaitable: Awaitable[Any], call_id: int) -> None:
        try:
            await awaitable
        except Exception:
            self._log_delayed_failure(call_id)

    def _spawn[T](
        self,
        loop: asyncio.AbstractEventLoop,
        coro: Coroutine[Any, Any, T],
        call_id: int,
    ) -> asyncio.Task[T]:
        task = loop.create_task(coro, name=self._task_name(call_id))
        # Keep a strong reference until the task is done
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _task_name(self, call_id: int) -> str:
        return f"{self.name}-call-{call_id}" if self.name else f"call-{call_id}"

    def _log_delayed_failure(self, call_id: int) -> None:
        logger.exception("Delayed call raised an exception", extra={"queue": self.name, "call_id": call_id})

    def _debug(self, msg: str, *args: object) -> None:
        if self.debug_mode:
            logger.debug(msg, *args, extra={"queue": self.name})
