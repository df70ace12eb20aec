"""Bandcamp upstream surface: home page, profile page and fancollection API."""
import logging
from typing import Any, Optional

import httpx
import orjson

from bcexport.errors import ApiError
from bcexport.fetch import endpoints
from bcexport.fetch.client import FetchClient
from bcexport.parse.models import ItemsPage, ResolvedIdentity
from bcexport.parse.redact import redact_json, redact_string

logger = logging.getLogger(__name__)


class BandcampSource:
    """Issues the requests the resolver and the harvester need."""

    def __init__(self, client: FetchClient):
        self.client = client

    async def fetch_home(self, cookie: str) -> httpx.Response:
        """Home page used to verify a cookie. Transport failures become ApiError."""
        try:
            return await self.client.get(endpoints.home_url(), cookie)
        except httpx.HTTPError as e:
            raise ApiError(f"Could not reach Bandcamp: {e}") from e

    async def fetch_profile_html(self, identity: ResolvedIdentity) -> str:
        """Fan profile page HTML for blob/DOM extraction."""
        url = endpoints.profile_url(identity)
        try:
            response = await self.client.get(url, identity.canonical_cookie_header)
        except httpx.HTTPError as e:
            raise ApiError(f"Failed to fetch profile page: {e}") from e
        if response.status_code != 200:
            raise ApiError(
                f"Failed to fetch profile page: {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    async def fetch_collection_page(
        self, identity: ResolvedIdentity, token: Optional[str], count: int
    ) -> ItemsPage:
        """One page of visible collection items."""
        return await self._fetch_items(endpoints.collection_items_url(), identity, token, count)

    async def fetch_hidden_page(
        self, identity: ResolvedIdentity, token: Optional[str], count: int
    ) -> ItemsPage:
        """One page of hidden collection items."""
        return await self._fetch_items(endpoints.hidden_items_url(), identity, token, count)

    async def _fetch_items(
        self, url: str, identity: ResolvedIdentity, token: Optional[str], count: int
    ) -> ItemsPage:
        payload = {
            "fan_id": identity.fan_id,
            "older_than_token": token,
            "count": count,
        }
        try:
            response = await self.client.post_json(url, payload, identity.canonical_cookie_header)
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {url} failed: {e}") from e

        data = _decode_json(response)
        if response.status_code != 200 or data.get("error"):
            logger.debug(f"{url} error body: {redact_json(data)}")
            message = data.get("error_message") or f"Bandcamp API error: {response.status_code}"
            raise ApiError(redact_string(str(message)), status_code=response.status_code)
        if not isinstance(data.get("items"), (list, type(None))):
            raise ApiError("Bandcamp returned an unusable payload", status_code=response.status_code)

        page = ItemsPage.from_api(data)
        logger.debug(
            f"{url}: {len(page.items)} items, more={page.more_available}, token={page.last_token}"
        )
        return page


def _decode_json(response: httpx.Response) -> dict[str, Any]:
    """Decode an API body; non-JSON bodies are an ApiError."""
    try:
        data = orjson.loads(response.content)
    except orjson.JSONDecodeError as e:
        raise ApiError(
            f"Bandcamp returned a non-JSON response ({response.status_code})",
            status_code=response.status_code,
        ) from e
    if not isinstance(data, dict):
        raise ApiError("Bandcamp returned an unexpected payload", status_code=response.status_code)
    return data
