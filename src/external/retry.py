# src/external/retry.py — v1
"""Bounded retry and fixed cool-down for outbound calls.

External services (knowledge graph, translator, classifiers) are called one
at a time per item. Failures are retried a small number of times with a
delay; after exhaustion the caller gets ExternalServiceFailure and skips the
item. Cooldown enforces a fixed minimum interval between calls (not a token
bucket).
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import httpx

from peoplegraph.config.settings import Settings
from peoplegraph.core.errors import ExternalServiceFailure, PeopleGraphError

logger = logging.getLogger(__name__)

# Error types that retrying cannot fix
NON_RETRYABLE: frozenset[str] = frozenset({"client_error"})


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for outbound calls."""

    max_retries: int = 2
    delay_s: float = 1.0
    backoff_factor: float = 1.0
    jitter: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryConfig:
        return cls(
            max_retries=settings.external_max_retries,
            delay_s=settings.external_retry_delay_s,
        )


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return "rate_limit"
        if status >= 500:
            return "server_error"
        return "client_error"
    if isinstance(error, httpx.TransportError):
        return "network"

    msg = str(error).lower()
    name = type(error).__name__.lower()
    if "429" in msg or "rate" in msg:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "server")):
        return "server_error"
    return "unknown"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "external call",
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with bounded retries.

    Engine errors (PeopleGraphError) propagate unchanged.

    Raises:
        ExternalServiceFailure: If all retries are exhausted or the error is
            not retryable.
    """
    config = config or RetryConfig()
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except PeopleGraphError:
            raise
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1

            if error_type in NON_RETRYABLE or attempts > config.max_retries:
                raise ExternalServiceFailure(operation, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.1fs",
                operation, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)


class Cooldown:
    """Fixed minimum interval between consecutive outbound calls.

    Args:
        interval_s: Minimum seconds between two `wait()` returns.
    """

    def __init__(
        self,
        interval_s: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval_s = interval_s
        self._sleep = sleep
        self._clock = clock
        self._last: float | None = None

    async def wait(self) -> None:
        """Sleep until the interval since the previous call has elapsed."""
        if self._last is not None and self.interval_s > 0:
            remaining = self.interval_s - (self._clock() - self._last)
            if remaining > 0:
                await self._sleep(remaining)
        self._last = self._clock()
