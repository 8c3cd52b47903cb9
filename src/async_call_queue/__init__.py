from .async_utils import async_timeout
from .call_ids import MAX_SAFE_INT, MIN_SAFE_INT, safe_increment
from .call_queue import AsyncCallQueue, CallBody

__all__ = [
    "MAX_SAFE_INT",
    "MIN_SAFE_INT",
    "AsyncCallQueue",
    "CallBody",
    "async_timeout",
    "safe_increment",
]
