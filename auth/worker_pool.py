"""Bounded thread pool for CPU-bound auth work (hashing, signing).

Coroutines await results here instead of running the work on the event loop,
so a burst of logins cannot stall request dispatch.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from auth.exceptions import InternalAuthError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkerPool:
    """
    Dedicated executor with a per-call timeout.

    Usage:
        pool = WorkerPool(max_workers=4, timeout_seconds=5)
        digest = await pool.run(hasher.hash, "secret")
        pool.shutdown()
    """

    def __init__(self, max_workers: int, timeout_seconds: float):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="auth-crypto",
        )
        self._timeout = timeout_seconds

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run func on the pool and await its result.

        Raises:
            InternalAuthError: If the call exceeds the timeout.
        """
        loop = asyncio.get_running_loop()
        call = functools.partial(func, *args, **kwargs)
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, call),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "%s exceeded %.1fs on the auth worker pool",
                getattr(func, "__qualname__", repr(func)),
                self._timeout,
            )
            raise InternalAuthError("Auth worker pool call timed out") from e

    def shutdown(self) -> None:
        """Stop accepting work and wait for running calls."""
        self._executor.shutdown(wait=True)
        logger.info("Auth worker pool shut down")
