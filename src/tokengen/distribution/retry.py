"""
Retry with exponential backoff for distribution steps.

Only recoverable failures are retried; a permanent ledger error or a
validation failure is returned to the orchestrator on the first attempt.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Optional

from tokengen.core.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
)
from tokengen.core.exceptions import TokenGenesisError, TransientTransferError

logger = logging.getLogger("tokengen.distribution.retry")


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, TransientTransferError):
        return True
    return isinstance(error, TokenGenesisError) and error.recoverable


class RetryStrategy:
    """
    Retry logic with exponential backoff and jitter.

    ``sleep`` is injectable so tests and dry runs do not wait.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        max_delay: float = DEFAULT_RETRY_MAX_DELAY,
        exponential_base: float = 2.0,
        jitter: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter:
            # Random factor between 0.5 and 1.5
            delay = delay * (0.5 + secrets.randbelow(1000) / 1000.0)
        return delay

    def execute(
        self, func: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> tuple[bool, Any, Optional[BaseException]]:
        """
        Execute ``func`` with retry logic.

        Returns:
            Tuple of (success, result, error). ``error`` is the last
            exception raised when every attempt failed.
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info("Operation succeeded on attempt %d", attempt + 1)
                return True, result, None
            except TokenGenesisError as exc:
                last_error = exc
                if not is_retryable(exc):
                    return False, None, exc
                logger.warning(
                    "Attempt %d failed: %s",
                    attempt + 1,
                    exc,
                    extra={"error_type": type(exc).__name__},
                )
                if attempt < self.max_retries:
                    delay = self.delay_for(attempt)
                    logger.info("Retrying in %.2f seconds...", delay)
                    self._sleep(delay)
            except (OSError, ValueError, TypeError, RuntimeError) as exc:
                return False, None, exc

        return False, None, last_error
