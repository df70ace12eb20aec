"""Tests for the scrape session (state owner, cache, reset)."""
import asyncio

import pytest
from bcexport.errors import ApiError, AuthError
from bcexport.jobs.session import ScrapeSession
from bcexport.parse.models import ItemsPage
from bcexport.parse.normalize import normalize_item
from bcexport.store.cache import RowCache


class StubResolver:
    def __init__(self, result):
        self.result = result

    async def resolve(self, raw_cookie):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture
def cache(tmp_path):
    return RowCache(db_path=tmp_path / "cache.db")


def make_session(source, resolver_result, cache=None):
    session = ScrapeSession(source, cache=cache)
    session.resolver = StubResolver(resolver_result)
    return session


def test_scrape_saves_rows_to_cache(fake_source, identity, item, cache):
    source = fake_source(
        collection=[ItemsPage(items=[item(1)])],
        hidden=[ItemsPage(items=[item(2)])],
    )
    session = make_session(source, identity, cache)
    batches = []

    progress = asyncio.run(session.start_scrape("identity=abc", on_batch=lambda r, p: batches.append(p)))

    assert progress.status == "completed"
    assert len(session.rows) == 2
    assert session.identity == identity
    assert batches[-1].status == "completed"
    cached = asyncio.run(cache.load_rows())
    assert [r.purchase_key for r in cached] == [r.purchase_key for r in session.rows]


def test_auth_error_surfaces_hint(fake_source):
    session = make_session(fake_source(), AuthError("cannot resolve fan identifier"))

    progress = asyncio.run(session.start_scrape("junk"))

    assert progress.status == "error"
    assert "cannot resolve fan identifier" in progress.error
    assert "fresh cookie" in progress.error
    assert session.rows == []


def test_api_error_during_identity(fake_source):
    session = make_session(fake_source(), ApiError("Could not reach Bandcamp"))
    progress = asyncio.run(session.start_scrape("identity=abc"))
    assert progress.status == "error"
    assert progress.error == "Could not reach Bandcamp"


def test_load_cached_marks_completed(fake_source, item, cache):
    asyncio.run(cache.save_rows([normalize_item(item(1))]))
    session = make_session(fake_source(), None, cache)

    assert asyncio.run(session.load_cached()) is True
    assert session.progress.status == "completed"
    assert len(session.rows) == 1


def test_load_cached_empty(fake_source, cache):
    session = make_session(fake_source(), None, cache)
    assert asyncio.run(session.load_cached()) is False
    assert session.progress.status == "idle"


def test_reset_clears_rows_progress_and_cache(fake_source, identity, item, cache):
    source = fake_source(collection=[ItemsPage(items=[item(1)])])
    session = make_session(source, identity, cache)

    async def run():
        await session.start_scrape("identity=abc")
        await session.reset()
        return await cache.load_rows()

    assert asyncio.run(run()) is None
    assert session.rows == []
    assert session.progress.status == "idle"
    assert session.progress.items_fetched == 0


def test_failed_scrape_is_not_cached(fake_source, identity, item, cache):
    source = fake_source(
        collection=[
            ItemsPage(items=[item(1)], more_available=True, last_token="t1"),
            ApiError("Bandcamp API error: 500"),
        ]
    )
    session = make_session(source, identity, cache)

    progress = asyncio.run(session.start_scrape("identity=abc"))

    assert progress.status == "error"
    assert len(session.rows) == 1
    assert asyncio.run(cache.load_rows()) is None

    restarted = make_session(fake_source(), None, cache)
    assert asyncio.run(restarted.load_cached()) is False
    assert restarted.progress.status == "idle"


def test_unexpected_error_ends_in_error_state(fake_source, identity, item):
    def broken(token):
        raise TypeError("'int' object is not iterable")

    source = fake_source(
        collection=[ItemsPage(items=[item(1)], more_available=True, last_token="t1"), broken]
    )
    session = make_session(source, identity)
    batches = []

    progress = asyncio.run(session.start_scrape("identity=abc", on_batch=lambda r, p: batches.append((r, p))))

    assert progress.status == "error"
    assert "not iterable" in progress.error
    assert session.progress.status == "error"
    assert len(session.rows) == 1
    assert batches[-1][1].status == "error"
    assert len(batches[-1][0]) == 1
