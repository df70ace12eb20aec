"""Locate and decode the JSON data-blob embedded in Bandcamp pages."""
import html
import logging
import re
from typing import Any, Optional

import orjson
from selectolax.parser import HTMLParser

from bcexport.errors import ParseError

logger = logging.getLogger(__name__)

DATA_BLOB_RE = re.compile(r'data-blob="([^"]+)"')


def find_data_blob(html_content: str | None) -> Optional[str]:
    """
    Return the raw data-blob attribute value, or None.
    Prefers div#pagedata, then any element carrying data-blob, then a regex scan.
    """
    if not html_content:
        return None

    parser = HTMLParser(html_content)
    for selector in ("#pagedata", "[data-blob]"):
        node = parser.css_first(selector)
        if node is not None:
            value = node.attributes.get("data-blob")
            if value:
                return value

    match = DATA_BLOB_RE.search(html_content)
    if match:
        return html.unescape(match.group(1))
    return None


def decode_blob(raw_blob: str) -> dict[str, Any]:
    """Decode a data-blob value, unescaping HTML entities if still present."""
    for candidate in (raw_blob, html.unescape(raw_blob)):
        try:
            decoded = orjson.loads(candidate)
        except orjson.JSONDecodeError:
            continue
        if isinstance(decoded, dict):
            return decoded
        raise ParseError(f"data-blob is {type(decoded).__name__}, expected object")
    raise ParseError("data-blob is not valid JSON")


def parse_data_blob(html_content: str | None) -> dict[str, Any]:
    """Extract and decode the page's data-blob. Raises ParseError."""
    raw_blob = find_data_blob(html_content)
    if raw_blob is None:
        raise ParseError("no data-blob found in page")
    blob = decode_blob(raw_blob)
    logger.debug(f"Blob keys: {sorted(blob.keys())}")
    return blob


def dig(data: Any, *path: str) -> Any:
    """Walk nested dicts, returning None when any step is missing."""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data
