# vehicle_intake/utils/retry.py
"""
Bounded retry with exponential backoff for async pipeline steps.

Delay before retry n (0-based) is base_delay * factor ** n, no jitter.
RetryableError is always retried, NonRetryableError never is; anything
else is retried only if the policy's retry_on predicate says so.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


class RetryableError(Exception):
    """Transient failure that may succeed on a later attempt."""


class NonRetryableError(Exception):
    """Deterministic failure; retrying will not change the outcome."""


def _never(exc: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.1
    factor: float = 2.0
    retry_on: Callable[[BaseException], bool] = _never

    @classmethod
    def from_settings(cls, settings, retry_on: Callable[[BaseException], bool] = _never) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY_SECONDS,
            retry_on=retry_on,
        )

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.factor ** attempt)

    def should_retry(self, exc: BaseException) -> bool:
        if isinstance(exc, NonRetryableError):
            return False
        if isinstance(exc, RetryableError):
            return True
        return self.retry_on(exc)

    async def run(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        on_retry: Optional[Callable[[int, BaseException], Awaitable[None]]] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Await func(*args, **kwargs) up to max_attempts times.

        on_retry(attempt, exc) is awaited after the backoff sleep and before
        the next attempt, so callers can refresh inputs (e.g. a new order
        number). The last exception is re-raised when attempts run out.
        """
        name = getattr(func, "__name__", repr(func))
        for attempt in range(self.max_attempts):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(e):
                    raise
                if attempt >= self.max_attempts - 1:
                    logger.error(f"All {self.max_attempts} attempts failed for {name}. Final error: {e}")
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Retry attempt {attempt + 1}/{self.max_attempts} for {name}. "
                    f"Error: {e}. Waiting {delay:.2f}s..."
                )
                await asyncio.sleep(delay)
                if on_retry is not None:
                    await on_retry(attempt + 1, e)
