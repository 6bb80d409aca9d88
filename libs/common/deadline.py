"""Per-call deadlines for service operations.

Every public service coroutine is wrapped with ``with_deadline`` so callers
can pass ``timeout=<seconds>``. When the deadline passes the running
operation is cancelled (rolling back any open write transaction) and
``OperationTimeoutError`` is raised.
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class OperationTimeoutError(Exception):
    """Raised when a service call does not finish before its deadline."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        self.message = f"{operation} did not complete within {timeout:g}s"
        super().__init__(self.message)


def with_deadline(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """Add an optional ``timeout`` keyword to an async service operation."""

    @functools.wraps(func)
    async def wrapper(*args: Any, timeout: Optional[float] = None, **kwargs: Any) -> T:
        limit = timeout
        if limit is None:
            limit = get_settings().OPERATION_TIMEOUT_SECONDS
        if limit is None:
            return await func(*args, **kwargs)

        try:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=limit)
        except asyncio.TimeoutError as exc:
            logger.warning("Operation %s exceeded deadline of %ss", func.__name__, limit)
            raise OperationTimeoutError(func.__name__, limit) from exc

    return wrapper
