"""Courtesy throttle between upstream requests, per host."""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces out requests to the same host by a minimum interval."""

    def __init__(self, rate_per_second: float):
        self.rate_per_second = rate_per_second
        self.min_interval = 1.0 / rate_per_second if rate_per_second > 0 else 0.0
        self._last_request: Dict[str, float] = defaultdict(float)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def _get_host(url: str) -> str:
        parsed = urlparse(url)
        return parsed.netloc or url

    async def acquire(self, url: str) -> float:
        """Wait until the host may be hit again. Returns the time slept."""
        if not self.min_interval:
            return 0.0

        host = self._get_host(url)
        async with self._locks[host]:
            last = self._last_request[host]
            wait_time = self.min_interval - (time.monotonic() - last) if last else 0.0
            if wait_time > 0:
                logger.debug(f"Throttling {host} for {wait_time:.3f}s")
                await asyncio.sleep(wait_time)
            else:
                wait_time = 0.0
            self._last_request[host] = time.monotonic()
            return wait_time
