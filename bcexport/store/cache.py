"""SQLite key-value cache for the last harvested rows."""
import aiosqlite
import logging
from pathlib import Path
from typing import Optional

import orjson
from pydantic import ValidationError

from bcexport.config import CACHE_DB
from bcexport.parse.models import PurchaseRow

logger = logging.getLogger(__name__)

ROWS_KEY = "bc_scraper_rows"


class RowCache:
    """Convenience cache of purchase rows between sessions; not authoritative."""

    def __init__(self, db_path: Path = CACHE_DB):
        self.db_path = db_path

    async def initialize(self) -> None:
        """Create the table if it doesn't exist."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TIMESTAMP
                )
                """
            )
            await db.commit()
            logger.debug(f"Row cache initialized at {self.db_path}")

    async def load_rows(self) -> Optional[list[PurchaseRow]]:
        """Return cached rows, or None when nothing usable is stored."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("SELECT value FROM kv_store WHERE key = ?", (ROWS_KEY,))
            row = await cursor.fetchone()
        if row is None:
            return None

        try:
            payload = orjson.loads(row[0])
            return [PurchaseRow.model_validate(item) for item in payload]
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            logger.warning(f"Ignoring unreadable row cache: {e}")
            return None

    async def save_rows(self, rows: list[PurchaseRow]) -> None:
        """Replace the cached rows."""
        await self.initialize()
        payload = orjson.dumps([row.model_dump(mode="json", by_alias=True) for row in rows])
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                """,
                (ROWS_KEY, payload),
            )
            await db.commit()
        logger.info(f"Cached {len(rows)} rows")

    async def clear(self) -> None:
        """Remove the cached rows."""
        await self.initialize()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM kv_store WHERE key = ?", (ROWS_KEY,))
            await db.commit()
