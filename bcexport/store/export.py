"""CSV and JSON export of purchase rows."""
import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

import aiofiles
import orjson

from bcexport.config import EXPORT_DIR
from bcexport.parse.models import PurchaseRow

logger = logging.getLogger(__name__)

ExportFormat = Literal["csv", "json"]

CSV_HEADERS = [
    "Artist",
    "Title",
    "Type",
    "Purchase Date",
    "Preorder Status",
    "Item URL",
    "Art URL",
]


def rows_to_csv(rows: list[PurchaseRow]) -> str:
    """Render rows as CSV with the UI's column set."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow(
            [
                row.artist,
                row.title,
                row.item_type,
                row.purchase_date or "",
                row.preorder_status,
                row.item_url,
                row.art_url,
            ]
        )
    return buffer.getvalue()


def rows_to_json(rows: list[PurchaseRow], exported_at: Optional[datetime] = None) -> bytes:
    """Render rows as an indented JSON document."""
    exported_at = exported_at or datetime.now(timezone.utc)
    document = {
        "exportedAt": exported_at.isoformat(),
        "count": len(rows),
        "purchases": [row.model_dump(mode="json", by_alias=True) for row in rows],
    }
    return orjson.dumps(document, option=orjson.OPT_INDENT_2)


def default_filename(fmt: ExportFormat, today: Optional[datetime] = None) -> str:
    """bandcamp-purchases-<YYYY-MM-DD>.<ext>"""
    today = today or datetime.now(timezone.utc)
    return f"bandcamp-purchases-{today.strftime('%Y-%m-%d')}.{fmt}"


def render(rows: list[PurchaseRow], fmt: ExportFormat) -> bytes:
    if fmt == "csv":
        return rows_to_csv(rows).encode("utf-8")
    if fmt == "json":
        return rows_to_json(rows)
    raise ValueError(f"Unsupported export format: {fmt}")


async def write_export(
    rows: list[PurchaseRow], fmt: ExportFormat, path: Optional[Path] = None
) -> Path:
    """Write rows to disk and return the file path."""
    content = render(rows, fmt)
    if path is None:
        path = EXPORT_DIR / default_filename(fmt)
    path.parent.mkdir(parents=True, exist_ok=True)

    async with aiofiles.open(path, "wb") as f:
        await f.write(content)
    logger.info(f"Exported {len(rows)} rows to {path}")
    return path
