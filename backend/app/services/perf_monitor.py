"""Timing utilities for codec and persistence calls."""
import time
import logging
import functools
from typing import Callable

logger = logging.getLogger("fenestra-perf")


def timed(func: Callable) -> Callable:
    """
    Decorator that measures and logs execution time for synchronous functions.

    Usage::

        @timed
        def decode(self, record):
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "%s took %.2f ms", func.__qualname__, duration_ms,
                extra={"timed_function": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper


def timed_async(func: Callable) -> Callable:
    """Decorator that measures and logs execution time for async functions."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.debug(
                "%s took %.2f ms", func.__qualname__, duration_ms,
                extra={"timed_function": func.__qualname__, "duration_ms": duration_ms},
            )
    return wrapper
