"""Asynchronous utility functions used by the call queue."""

import asyncio
import inspect
from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager


@asynccontextmanager
async def async_timeout(seconds: float | None) -> AsyncGenerator[None]:
    """Context manager for optional timeout handling.

    Args:
        seconds: Timeout duration in seconds, or None to wait without limit

    Raises:
        TimeoutError: If the operation takes longer than specified timeout
        ValueError: If seconds is not positive

    Example:
        async with async_timeout(5.0):
            await lock.acquire()

        # None disables the limit
        async with async_timeout(None):
            await lock.acquire()
    """
    if seconds is not None and seconds <= 0:
        raise ValueError("Timeout must be positive")

    try:
        async with asyncio.timeout(seconds):
            yield
    except TimeoutError:
        # Convert to standard TimeoutError for consistency
        raise TimeoutError from None


async def resolve[T](value: T | Awaitable[T]) -> T:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
