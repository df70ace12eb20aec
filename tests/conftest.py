"""Shared fixtures: a scripted stand-in for the Bandcamp source."""
from typing import Optional

import pytest
from bcexport.errors import ApiError
from bcexport.parse.models import ItemsPage, ResolvedIdentity


class FakeSource:
    """
    Replays scripted pages. Each script entry is an ItemsPage, an ApiError
    to raise, or a callable(token) returning one of those.
    """

    def __init__(self, collection=None, hidden=None, profile_html=None):
        self.collection = list(collection or [])
        self.hidden = list(hidden or [])
        self.profile_html = profile_html
        self.collection_tokens: list[Optional[str]] = []
        self.hidden_tokens: list[Optional[str]] = []
        self.profile_calls = 0

    @staticmethod
    def _next(script, token):
        entry = script.pop(0) if script else ItemsPage()
        if callable(entry):
            entry = entry(token)
        if isinstance(entry, ApiError):
            raise entry
        return entry

    async def fetch_collection_page(self, identity, token, count):
        self.collection_tokens.append(token)
        return self._next(self.collection, token)

    async def fetch_hidden_page(self, identity, token, count):
        self.hidden_tokens.append(token)
        return self._next(self.hidden, token)

    async def fetch_profile_html(self, identity):
        self.profile_calls += 1
        if self.profile_html is None:
            raise ApiError("Failed to fetch profile page: 404", status_code=404)
        return self.profile_html


def make_item(item_id, item_type="a", date="2024-01-01", **extra):
    item = {
        "item_id": item_id,
        "item_type": item_type,
        "band_name": f"Band {item_id}",
        "item_title": f"Title {item_id}",
        "item_url": f"https://band.bandcamp.com/album/{item_id}",
        "art_id": 1000 + item_id,
        "purchased": date,
    }
    item.update(extra)
    return item


@pytest.fixture
def identity():
    return ResolvedIdentity(
        fan_id="123",
        username_slug="sluggy",
        canonical_cookie_header="identity=abc; session=def",
        display_name="Sluggy",
        reported_collection_count=2,
    )


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def item():
    return make_item
