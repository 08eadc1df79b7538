"""Bounded retry with jittered exponential backoff for provider calls."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from websockets.exceptions import ConnectionClosedError

from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

logger = setup_logging()

T = TypeVar("T")

# Vendor status strings and codes that signal a transient upstream condition.
TRANSIENT_VENDOR_CODES = frozenset({"UNAVAILABLE", "INTERNAL", "DEADLINE_EXCEEDED", 14, 6})

NETWORK_ERRORS = (ConnectionError, TimeoutError, httpx.TransportError, ConnectionClosedError)


def is_transient(error: BaseException) -> bool:
    """
    Classifies an error as transient (worth retrying) or permanent.

    Transient: upstream 5xx, network-layer failures, and known vendor
    transient codes. Everything else, including 4xx and quota exhaustion,
    is permanent.
    """
    if isinstance(error, ProviderError):
        if error.status_code is not None and 500 <= error.status_code < 600:
            return True
        return error.vendor_code in TRANSIENT_VENDOR_CODES
    return isinstance(error, NETWORK_ERRORS)


class RetryExecutor:
    """Runs provider calls with bounded, jittered exponential backoff."""

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter: Callable[[], float] = lambda: random.uniform(0.5, 1.5),
    ):
        self._sleep = sleep
        self._jitter = jitter

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int,
        initial_delay_ms: int,
        label: str = "provider call",
    ) -> T:
        """
        Awaits `operation`, retrying transient failures.

        The operation is attempted at most `max_retries + 1` times. The delay
        before retry n is `initial_delay_ms * 2**n` scaled by a random jitter
        factor. Permanent errors and the last transient error are re-raised
        unchanged.
        """
        delay_ms = initial_delay_ms
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if attempt >= max_retries or not is_transient(e):
                    raise
                attempt += 1
                wait_seconds = delay_ms * self._jitter() / 1000
                logger.warning(
                    "Transient failure, retrying",
                    extra={
                        "label": label,
                        "attempt": attempt,
                        "max_retries": max_retries,
                        "delay_seconds": round(wait_seconds, 3),
                        "error": str(e),
                    },
                )
                await self._sleep(wait_seconds)
                delay_ms *= 2
