"""Extract collection items from a fan profile page.

Used when the paginated API yields nothing. Each extraction reads the whole
page at once, so results never carry a continuation token.
"""
import logging
import re
from typing import Any, Callable, Optional

from selectolax.parser import HTMLParser, Node

from bcexport.errors import ParseError
from bcexport.parse.blob import dig, parse_data_blob
from bcexport.parse.models import ItemsPage, RawItem

logger = logging.getLogger(__name__)

ART_ID_RE = re.compile(r"/a(\d+)_\d+\.\w+")
TYPE_CODES = {"album": "a", "track": "t", "package": "p"}


def _redownload_item(key: str, entry: dict) -> RawItem:
    """Map a redownload_urls entry onto the API item shape."""
    item = dict(entry)
    item.setdefault("item_id", entry.get("sale_item_id") or key)
    item.setdefault("item_type", entry.get("sale_item_type") or "a")
    item.setdefault("item_title", entry.get("title") or "")
    item.setdefault("item_url", entry.get("url") or "")
    item.setdefault("band_name", "")
    return item


def items_from_redownload_map(blob: dict) -> Optional[list[RawItem]]:
    """collection_data.redownload_urls, when its entries are item records."""
    redownload = dig(blob, "collection_data", "redownload_urls")
    if not isinstance(redownload, dict) or not redownload:
        return None
    items = [
        _redownload_item(str(key), entry)
        for key, entry in redownload.items()
        if isinstance(entry, dict)
    ]
    return items or None


def items_from_item_cache(blob: dict) -> Optional[list[RawItem]]:
    """item_cache.collection: items keyed by '<type><id>'."""
    cache = dig(blob, "item_cache", "collection")
    if not isinstance(cache, dict) or not cache:
        return None
    items = [item for item in cache.values() if isinstance(item, dict)]
    return items or None


BLOB_STRATEGIES: tuple[tuple[str, Callable[[dict], Optional[list[RawItem]]]], ...] = (
    ("blob:redownload_urls", items_from_redownload_map),
    ("blob:item_cache", items_from_item_cache),
)


def _node_text(node: Node, selector: str) -> str:
    found = node.css_first(selector)
    return found.text(strip=True) if found is not None else ""


def _dom_item(node: Node) -> Optional[RawItem]:
    attrs = node.attributes
    item_id = attrs.get("data-itemid") or attrs.get("data-tralbumid")
    if not item_id:
        return None

    item_type = (attrs.get("data-itemtype") or "").lower()
    artist = _node_text(node, ".collection-item-artist")
    if artist.lower().startswith("by "):
        artist = artist[3:].strip()

    link = node.css_first("a.item-link") or node.css_first("a[href]")
    art = node.css_first("img.collection-item-art") or node.css_first("img")
    art_src = ""
    if art is not None:
        art_src = art.attributes.get("src") or art.attributes.get("data-original") or ""
    art_match = ART_ID_RE.search(art_src)

    return {
        "item_id": int(item_id) if item_id.isdigit() else item_id,
        "item_type": TYPE_CODES.get(item_type, item_type[:1]),
        "item_title": _node_text(node, ".collection-item-title"),
        "band_name": artist,
        "item_url": (link.attributes.get("href") or "") if link is not None else "",
        "art_id": int(art_match.group(1)) if art_match else None,
    }


def items_from_dom(html_content: str) -> Optional[list[RawItem]]:
    """Last resort: read the rendered collection grid."""
    parser = HTMLParser(html_content)
    items = []
    for node in parser.css("li.collection-item-container"):
        item = _dom_item(node)
        if item is not None:
            items.append(item)
    return items or None


def extract_collection_page(html_content: str) -> Optional[ItemsPage]:
    """
    Run page extraction strategies in priority order:
    blob redownload map, blob item cache, then DOM scraping.
    Returns None when no strategy finds items.
    """
    blob: dict[str, Any] = {}
    try:
        blob = parse_data_blob(html_content)
    except ParseError as e:
        logger.warning(f"Blob extraction unavailable: {e}")

    for name, strategy in BLOB_STRATEGIES:
        if not blob:
            break
        items = strategy(blob)
        if items:
            logger.info(f"Extracted {len(items)} items via {name}")
            tracklists = blob.get("tracklists")
            return ItemsPage(
                items=items,
                more_available=False,
                tracklists=tracklists if isinstance(tracklists, dict) else {},
                strategy=name,
            )

    items = items_from_dom(html_content)
    if items:
        logger.info(f"Extracted {len(items)} items via dom")
        return ItemsPage(items=items, more_available=False, strategy="dom")

    return None
