"""HTTP client with throttling, optional retries and error handling."""
import logging
from typing import Any, Optional
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from bcexport.config import config
from bcexport.fetch.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


class FetchClient:
    """Thin async HTTP client; the caller supplies the cookie header per request."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_per_domain: Optional[float] = None,
    ):
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=config.TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": config.USER_AGENT},
            transport=transport,
        )
        self.rate_limiter = RateLimiter(
            config.RATE_PER_DOMAIN if rate_per_domain is None else rate_per_domain
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(config.MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def get(self, url: str, cookie: str) -> httpx.Response:
        """GET a page with the given cookie header."""
        await self.rate_limiter.acquire(url)
        try:
            return await self.client.get(url, headers={"Cookie": cookie})
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Network error for {url}: {e}")
            raise

    @retry(
        stop=stop_after_attempt(config.MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    async def post_json(self, url: str, payload: dict[str, Any], cookie: str) -> httpx.Response:
        """POST a JSON body the way Bandcamp's own front end does (XHR)."""
        await self.rate_limiter.acquire(url)
        headers = {
            "Cookie": cookie,
            "Origin": config.BASE_URL,
            "Referer": f"{config.BASE_URL}/",
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "X-Requested-With": "XMLHttpRequest",
        }
        try:
            return await self.client.post(url, json=payload, headers=headers)
        except TRANSIENT_ERRORS as e:
            logger.warning(f"Network error for {url}: {e}")
            raise
