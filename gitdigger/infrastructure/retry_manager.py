"""
Retry with exponential backoff for retryable provider failures.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from ..models import BackoffConfig
from .error_handler import RETRYABLE_ERRORS
from .logger import logger


class RetryManager:
    """
    Re-invokes a coroutine function on retryable errors.

    The delay honors an error's `retry_after` hint when it carries one,
    otherwise it grows exponentially from `base_delay`, capped at
    `max_delay`, with +/-20% jitter.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retries_performed = 0

    @classmethod
    def from_backoff(cls, backoff: BackoffConfig) -> "RetryManager":
        return cls(
            max_retries=backoff.max_attempts - 1,
            base_delay=backoff.base_delay,
            max_delay=backoff.max_delay,
            jitter=backoff.jitter,
        )

    async def execute(
        self,
        func: Callable[..., Awaitable[Any]],
        *args,
        exceptions: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
        max_retries: Optional[int] = None,
        on_retry: Optional[Callable[[int, BaseException, float], Awaitable[None]]] = None,
        **kwargs,
    ) -> Any:
        """
        Run `func(*args, **kwargs)` until it succeeds or retries run out.

        Args:
            func: Coroutine function to invoke
            exceptions: Error types that trigger a retry
            max_retries: Override of the manager's retry count
            on_retry: Awaited before each retry delay with (attempt, error, delay)

        Returns:
            Whatever `func` returns

        Raises:
            The last error once all attempts failed, or any non-retryable error
        """

        retries = self.max_retries if max_retries is None else max_retries
        attempts = retries + 1

        for attempt in range(attempts):
            try:
                return await func(*args, **kwargs)
            except exceptions as e:
                if attempt + 1 >= attempts:
                    logger.error(f"All {attempts} attempts failed, giving up: {e}")
                    raise

                delay = self._delay_for(attempt, e)
                logger.warning(
                    f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f}s"
                )
                if on_retry is not None:
                    await on_retry(attempt, e, delay)
                self.retries_performed += 1
                await asyncio.sleep(delay)

    def _delay_for(self, attempt: int, error: BaseException) -> float:
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            return max(float(retry_after), 0.0)
        return self._calculate_delay(attempt)

    def _calculate_delay(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.8, 1.2)
        return delay


__all__ = ["RetryManager"]
