"""Normalize raw Bandcamp items into purchase rows and drop repeats."""
import logging
from typing import Any, Iterable

from bcexport.config import config
from bcexport.parse.models import PurchaseRow, RawItem

logger = logging.getLogger(__name__)

ITEM_TYPES = {
    "a": "album",
    "t": "track",
    "p": "package",
}
PREORDER_STATUSES = ("unreleased", "released", "unknown")
PLACEHOLDER_ART_URL = "/no-art.png"
THUMB_SUFFIX = "_10.jpg"
LARGE_SUFFIX = "_16.jpg"


def _text(value: Any) -> str:
    """Render an optional field as text."""
    if value is None:
        return ""
    return str(value)


def build_purchase_key(item_type: Any, item_id: Any, purchase_date: str | None) -> str:
    """Compose the deduplication key: <type-code>:<item-id>:<date-or-unknown>."""
    return f"{_text(item_type)}:{_text(item_id)}:{purchase_date or 'unknown'}"


def art_url_for(art_id: Any) -> str:
    """Thumbnail URL for an artwork id, or the placeholder."""
    if not art_id:
        return PLACEHOLDER_ART_URL
    return f"{config.ART_BASE_URL}/a{art_id}{THUMB_SUFFIX}"


def large_art_url(art_url: str) -> str:
    """Swap a thumbnail URL for its 700px variant (detail views)."""
    if art_url.endswith(THUMB_SUFFIX):
        return art_url[: -len(THUMB_SUFFIX)] + LARGE_SUFFIX
    return art_url


def normalize_item(raw: RawItem, is_hidden: bool = False) -> PurchaseRow:
    """
    Convert a raw item from any upstream shape into a PurchaseRow.
    Never raises: every field is treated as optional.
    """
    if not isinstance(raw, dict):
        raw = {}

    type_code = raw.get("item_type")
    item_type = ITEM_TYPES.get(type_code, "unknown") if isinstance(type_code, str) else "unknown"

    purchase_date = raw.get("purchased") or raw.get("purchase_date") or None
    if purchase_date is not None:
        purchase_date = str(purchase_date)

    item_id = raw.get("item_id")
    if not isinstance(item_id, (int, str)) or isinstance(item_id, bool):
        item_id = None if item_id is None else str(item_id)

    is_preorder = bool(raw.get("is_preorder"))
    preorder_status = "unknown"
    if is_preorder:
        status = raw.get("preorder_status") or "unreleased"
        preorder_status = status if status in PREORDER_STATUSES else "unknown"

    return PurchaseRow(
        purchase_key=build_purchase_key(type_code, raw.get("item_id"), purchase_date),
        purchase_date=purchase_date,
        item_type=item_type,
        item_id=item_id,
        title=_text(raw.get("item_title")),
        artist=_text(raw.get("band_name")),
        item_url=_text(raw.get("item_url")),
        art_url=art_url_for(raw.get("art_id")),
        is_preorder=is_preorder,
        preorder_status=preorder_status,
        is_hidden=is_hidden,
        raw_item=raw,
    )


def dedupe_rows(rows: Iterable[PurchaseRow]) -> list[PurchaseRow]:
    """Keep the first row for each purchase key, in input order."""
    seen: set[str] = set()
    unique = []
    for row in rows:
        if row.purchase_key in seen:
            continue
        seen.add(row.purchase_key)
        unique.append(row)
    return unique
