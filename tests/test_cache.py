"""Tests for the SQLite row cache."""
import asyncio

import pytest
from bcexport.parse.normalize import normalize_item
from bcexport.store.cache import ROWS_KEY, RowCache


@pytest.fixture
def cache(tmp_path):
    return RowCache(db_path=tmp_path / "cache.db")


def test_empty_cache_loads_none(cache):
    assert asyncio.run(cache.load_rows()) is None


def test_save_and_load_rows(cache, item):
    rows = [normalize_item(item(1)), normalize_item(item(2, item_type="t"), is_hidden=True)]

    async def run():
        await cache.save_rows(rows)
        return await cache.load_rows()

    loaded = asyncio.run(run())

    assert [r.purchase_key for r in loaded] == [r.purchase_key for r in rows]
    assert loaded[1].is_hidden is True
    assert loaded[0].raw_item == rows[0].raw_item


def test_clear(cache, item):
    async def run():
        await cache.save_rows([normalize_item(item(1))])
        await cache.clear()
        return await cache.load_rows()

    assert asyncio.run(run()) is None


def test_unreadable_cache_is_ignored(cache):
    import aiosqlite

    async def run():
        await cache.initialize()
        async with aiosqlite.connect(cache.db_path) as db:
            await db.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?)", (ROWS_KEY, b"not json")
            )
            await db.commit()
        return await cache.load_rows()

    assert asyncio.run(run()) is None
