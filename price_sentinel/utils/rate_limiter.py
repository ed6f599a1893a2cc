"""
Rate limiting utilities for controlling request frequency.

This module provides the minimum-interval limiter used by provider clients
to keep a fixed gap between consecutive requests to the same provider.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from ..utils.logging import get_logger

logger = get_logger("rate_limiter")


class MinIntervalLimiter:
    """Enforces a minimum delay between consecutive acquisitions."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize limiter.

        Args:
            min_interval: Minimum seconds between two acquisitions
            clock: Monotonic clock returning seconds
            sleep: Coroutine used to wait
        """
        if min_interval < 0:
            raise ValueError("min_interval cannot be negative")

        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_acquired: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """
        Wait until a request may be sent.

        Returns:
            Seconds spent waiting
        """
        async with self._lock:
            waited = 0.0
            if self._last_acquired is not None:
                elapsed = self._clock() - self._last_acquired
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.debug(
                        f"Rate limit: waiting {waited:.2f}s",
                        extra={"min_interval": self.min_interval},
                    )
                    await self._sleep(waited)

            self._last_acquired = self._clock()
            return waited

    def reset(self) -> None:
        """Forget the last acquisition time."""
        self._last_acquired = None

    @property
    def last_acquired(self) -> Optional[float]:
        return self._last_acquired
