"""
Retry utility for ledger RPC calls.

Exponential backoff with jitter, applied only to errors the caller marks
as transient so that definitive answers surface immediately.
"""

import asyncio
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

from txmonitor.monitor.config import RetryConfig

logger = structlog.get_logger()

T = TypeVar("T")


def backoff_delay(config: RetryConfig, attempt: int) -> float:
    """Delay in seconds before the retry following zero-based ``attempt``."""
    delay = min(
        config.initial_delay * (config.exponential_base**attempt),
        config.max_delay,
    )
    if config.jitter:
        delay = delay * (0.5 + random.random() * 0.5)
    return delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute a function with exponential backoff retry.

    Args:
        func: Async function to execute
        config: Retry configuration
        operation_name: Name for logging
        retry_on: Exception types worth retrying; anything else propagates
            on the first occurrence

    Returns:
        Function result

    Raises:
        Exception: Last exception if all retries exhausted
    """
    attempt = 0
    while True:
        try:
            return await func()
        except retry_on as e:
            attempt_num = attempt + 1

            if attempt_num >= config.max_attempts:
                logger.error(
                    "retry.exhausted",
                    operation=operation_name,
                    attempts=attempt_num,
                    error=str(e),
                )
                raise

            delay = backoff_delay(config, attempt)
            logger.warning(
                "retry.attempt",
                operation=operation_name,
                attempt=attempt_num,
                max_attempts=config.max_attempts,
                delay_seconds=delay,
                error=str(e),
            )

            await asyncio.sleep(delay)
            attempt += 1
