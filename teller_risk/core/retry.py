"""Bounded retry with exponential backoff for store round trips."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from teller_risk.core.config import StoreConfig
from teller_risk.core.database import is_retryable_sqlstate
from teller_risk.core.errors import ChainConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Return True for failures worth another attempt."""
    if isinstance(error, ChainConflictError):
        return True
    if isinstance(error, (OperationalError, InterfaceError)):
        return True
    if isinstance(error, DBAPIError):
        return error.connection_invalidated or is_retryable_sqlstate(error)
    return False


class RetryPolicy:
    """Exponential backoff capped at ``max_delay``."""

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 0.05,
        max_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: StoreConfig) -> RetryPolicy:
        return cls(
            attempts=config.retry_attempts,
            base_delay=config.retry_base_delay_ms / 1000,
            max_delay=config.retry_max_delay_ms / 1000,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))

    async def run(self, operation: Callable[[], Awaitable[T]], name: str = "store operation") -> T:
        """Run ``operation`` until it succeeds, fails permanently, or attempts run out."""
        last_error: BaseException | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not is_transient(e):
                    raise
                last_error = e
                if attempt == self.attempts:
                    break
                delay = self.delay_for(attempt)
                logger.warning(
                    "Transient store failure, retrying",
                    extra={
                        "operation": name,
                        "attempt": attempt,
                        "max_attempts": self.attempts,
                        "delay_seconds": delay,
                        "error": type(e).__name__,
                    },
                )
                await self._sleep(delay)

        logger.error(
            "Store unavailable after retries",
            extra={"operation": name, "attempts": self.attempts},
        )
        raise StoreUnavailableError(
            "Store unavailable, operation was not applied",
            details={"operation": name, "attempts": self.attempts},
        ) from last_error
