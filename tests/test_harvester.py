"""Tests for the collection harvester."""
import asyncio
import html
import json

import pytest
from bcexport.errors import ApiError
from bcexport.jobs.harvester import MOST_RECENT_TOKEN, CollectionHarvester
from bcexport.parse.models import ItemsPage


def run_harvest(source, identity, **kwargs):
    batches = []
    harvester = CollectionHarvester(source, page_size=10, **kwargs)
    progress = asyncio.run(
        harvester.harvest(identity, on_batch=lambda rows, p: batches.append((rows, p)))
    )
    return harvester, progress, batches


def test_visible_then_hidden(fake_source, identity, item):
    """One visible item and one hidden item give two rows, completed."""
    source = fake_source(
        collection=[ItemsPage(items=[item(111)], more_available=False)],
        hidden=[ItemsPage(items=[item(222, item_type="t", is_preorder=True)], more_available=False)],
    )
    harvester, progress, batches = run_harvest(source, identity)

    assert progress.status == "completed"
    assert progress.items_fetched == 2
    assert progress.pages_fetched == 2
    assert [r.purchase_key for r in harvester.rows] == ["a:111:2024-01-01", "t:222:2024-01-01"]
    assert harvester.rows[1].is_hidden is True
    assert source.collection_tokens == [MOST_RECENT_TOKEN]
    assert source.hidden_tokens == [None]
    # scraping, visible page, hidden page, completed
    assert [p.status for _, p in batches] == ["scraping", "scraping", "scraping", "completed"]
    assert len(batches[1][0]) == 1


def test_follows_continuation_tokens(fake_source, identity, item):
    source = fake_source(
        collection=[
            ItemsPage(items=[item(1), item(2)], more_available=True, last_token="tok-1"),
            ItemsPage(items=[item(3)], more_available=True, last_token="tok-2"),
            ItemsPage(items=[item(4)], more_available=False, last_token="tok-3"),
        ],
    )
    harvester, progress, _ = run_harvest(source, identity)

    assert source.collection_tokens == [MOST_RECENT_TOKEN, "tok-1", "tok-2"]
    assert len(harvester.rows) == 4
    assert progress.pages_fetched == 3


def test_stops_when_no_token_returned(fake_source, identity, item):
    """more_available without a token ends the pass."""
    source = fake_source(collection=[ItemsPage(items=[item(1)], more_available=True, last_token=None)])
    harvester, progress, _ = run_harvest(source, identity)

    assert source.collection_tokens == [MOST_RECENT_TOKEN]
    assert progress.status == "completed"


def test_empty_first_page_retries_with_null_token(fake_source, identity, item):
    """Sentinel page empty, null-token retry returns the item."""
    source = fake_source(
        collection=[ItemsPage(), ItemsPage(items=[item(5)], more_available=False)],
    )
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "completed"
    assert source.collection_tokens == [MOST_RECENT_TOKEN, None]
    assert [r.item_id for r in harvester.rows] == [5]
    assert source.profile_calls == 0


def test_empty_page_after_rows_ends_pass(fake_source, identity, item):
    source = fake_source(
        collection=[
            ItemsPage(items=[item(1)], more_available=True, last_token="t1"),
            ItemsPage(more_available=True, last_token="t2"),
        ],
    )
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "completed"
    assert len(harvester.rows) == 1
    assert source.collection_tokens == [MOST_RECENT_TOKEN, "t1"]


def test_hidden_failure_is_not_fatal(fake_source, identity, item):
    """Hidden pass transport error still completes with visible rows."""
    source = fake_source(
        collection=[ItemsPage(items=[item(1)], more_available=False)],
        hidden=[ApiError("Request to hidden_items failed: connection reset")],
    )
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "completed"
    assert progress.error is None
    assert len(harvester.rows) == 1


def test_safety_bound_stops_endless_pagination(fake_source, identity, item):
    """A source that always has more is stopped by the page bound."""
    def endless(token):
        n = 0 if token == MOST_RECENT_TOKEN else int(token) + 1
        return ItemsPage(items=[item(n)], more_available=True, last_token=str(n))

    source = fake_source(collection=[endless] * 50)
    source.hidden = [
        lambda token: ItemsPage(
            items=[item(1000 + int(token or -1) + 1)],
            more_available=True,
            last_token=str(int(token or -1) + 1),
        )
    ] * 50
    harvester, progress, _ = run_harvest(source, identity, max_pages=5)

    assert progress.status == "completed"
    assert len(source.collection_tokens) == 5
    assert len(source.hidden_tokens) == 5
    assert progress.pages_fetched == 10
    assert len(harvester.rows) == 10


def test_visible_error_mid_pagination_fails(fake_source, identity, item):
    """A failing page after rows were gathered aborts with error; rows kept."""
    source = fake_source(
        collection=[
            ItemsPage(items=[item(1)], more_available=True, last_token="t1"),
            ApiError("Bandcamp API error: 500", status_code=500),
        ],
        hidden=[ItemsPage(items=[item(9)])],
    )
    harvester, progress, batches = run_harvest(source, identity)

    assert progress.status == "error"
    assert progress.error == "Bandcamp API error: 500"
    assert len(harvester.rows) == 1
    assert source.hidden_tokens == []
    assert batches[-1][1].status == "error"


def test_empty_collection_falls_back_to_profile_blob(fake_source, identity, item):
    """API has nothing; the profile blob's item cache supplies the rows."""
    blob = {"item_cache": {"collection": {"a7": item(7)}}}
    page = f'<div id="pagedata" data-blob="{html.escape(json.dumps(blob), quote=True)}"></div>'
    source = fake_source(collection=[ItemsPage(), ItemsPage()], profile_html=page)
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "completed"
    assert source.profile_calls == 1
    assert [r.item_id for r in harvester.rows] == [7]


def test_first_page_error_falls_back_to_profile(fake_source, identity, item):
    page = """
    <li class="collection-item-container" data-itemid="8" data-itemtype="album">
      <div class="collection-item-title">Eight</div>
    </li>
    """
    source = fake_source(collection=[ApiError("Bandcamp API error: 403")], profile_html=page)
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "completed"
    assert harvester.rows[0].title == "Eight"
    assert harvester.rows[0].purchase_key == "a:8:unknown"


def test_nothing_anywhere_is_an_error(fake_source, identity):
    """Zero rows after every strategy fails the visible pass."""
    source = fake_source(collection=[ItemsPage(), ItemsPage()])
    harvester, progress, _ = run_harvest(source, identity)

    assert progress.status == "error"
    assert progress.error == "Bandcamp returned no collection items"
    assert harvester.rows == []
    assert source.hidden_tokens == []


def test_first_page_error_reported_when_fallback_fails(fake_source, identity):
    source = fake_source(collection=[ApiError("You are not logged in")])
    _, progress, _ = run_harvest(source, identity)

    assert progress.status == "error"
    assert progress.error == "You are not logged in"


def test_duplicates_across_passes(fake_source, identity, item):
    """A hidden item repeating a visible purchase is kept once."""
    source = fake_source(
        collection=[ItemsPage(items=[item(1), item(2)])],
        hidden=[ItemsPage(items=[item(2), item(3)])],
    )
    harvester, progress, _ = run_harvest(source, identity)

    assert [r.item_id for r in harvester.rows] == [1, 2, 3]
    assert harvester.rows[1].is_hidden is False
    assert progress.items_fetched == 4


def test_include_hidden_false(fake_source, identity, item):
    source = fake_source(collection=[ItemsPage(items=[item(1)])], hidden=[ItemsPage(items=[item(2)])])
    harvester, progress, _ = run_harvest(source, identity, include_hidden=False)

    assert source.hidden_tokens == []
    assert len(harvester.rows) == 1
