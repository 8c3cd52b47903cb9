"""Tests for async_utils module."""

import asyncio

import pytest

from async_call_queue.async_utils import async_timeout, resolve


class TestAsyncTimeout:
    """Test cases for async_timeout context manager."""

    async def test_lock_acquired_within_timeout(self) -> None:
        """Test that a free lock is acquired normally."""
        lock = asyncio.Lock()

        async with async_timeout(1.0):
            await lock.acquire()

        assert lock.locked()
        lock.release()

    async def test_busy_lock_exceeds_timeout(self) -> None:
        """Test that waiting on a held lock past the timeout raises TimeoutError."""
        lock = asyncio.Lock()
        await lock.acquire()

        with pytest.raises(TimeoutError):
            async with async_timeout(0.05):
                await lock.acquire()

        # The timed-out waiter must not leave the lock in a broken state
        lock.release()
        assert not lock.locked()
        async with async_timeout(0.05):
            await lock.acquire()
        lock.release()

    async def test_none_disables_timeout(self) -> None:
        """Test that None waits without limit."""
        async with async_timeout(None):
            await asyncio.sleep(0.05)

    async def test_zero_timeout_validation(self) -> None:
        """Test that zero timeout raises ValueError."""
        with pytest.raises(ValueError, match="Timeout must be positive"):
            async with async_timeout(0):
                pass

    async def test_negative_timeout_validation(self) -> None:
        """Test that negative timeout raises ValueError."""
        with pytest.raises(ValueError, match="Timeout must be positive"):
            async with async_timeout(-1.0):
                pass

    async def test_timeout_exception_chaining(self) -> None:
        """Test that TimeoutError doesn't chain the original cancellation."""
        with pytest.raises(TimeoutError) as exc_info:
            async with async_timeout(0.05):
                await asyncio.sleep(1.0)

        assert exc_info.value.__cause__ is None

    async def test_inner_exception_passes_through(self) -> None:
        """Test that exceptions raised inside the block are not converted."""

        class CustomError(Exception):
            pass

        with pytest.raises(CustomError):
            async with async_timeout(1.0):
                raise CustomError("test error")


class TestResolve:
    """Test cases for resolve helper."""

    async def test_plain_value(self) -> None:
        assert await resolve(42) == 42
        assert await resolve(None) is None

    async def test_coroutine(self) -> None:
        async def compute() -> str:
            await asyncio.sleep(0.01)
            return "done"

        assert await resolve(compute()) == "done"

    async def test_future(self) -> None:
        future: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        future.set_result(7)
        assert await resolve(future) == 7

    async def test_exception_propagates(self) -> None:
        async def fail() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await resolve(fail())
