"""Fan identity fragments from the home/profile data-blob.

Bandcamp populates one of several shapes depending on the page and on the
rollout of its front end. Each strategy below recognises exactly one shape
and returns None otherwise; FAN_STRATEGIES is tried in order.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from bcexport.parse.blob import dig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanFragment:
    """Partial identity recovered from a blob."""

    fan_id: Optional[str]
    display_name: Optional[str]
    username_slug: str
    collection_count: int
    source: str


def _as_id(*candidates: Any) -> Optional[str]:
    for value in candidates:
        if value is None or value == "" or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text.isdigit():
            return text
    return None


def _as_count(*candidates: Any) -> int:
    for value in candidates:
        try:
            count = int(value)
        except (TypeError, ValueError):
            continue
        if count >= 0:
            return count
    return 0


def _first_text(*candidates: Any) -> Optional[str]:
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return None


def from_identities(blob: dict) -> Optional[FanFragment]:
    """Home page shape: identities.fan."""
    fan = dig(blob, "identities", "fan")
    if not isinstance(fan, dict) or not fan:
        return None
    return FanFragment(
        fan_id=_as_id(fan.get("id"), fan.get("fan_id")),
        display_name=_first_text(fan.get("name"), fan.get("username")),
        username_slug=fan.get("username") or "",
        collection_count=_as_count(fan.get("collection_count")),
        source="identities.fan",
    )


def from_fan_data(blob: dict) -> Optional[FanFragment]:
    """Profile page shape: fan_data."""
    fan = blob.get("fan_data")
    if not isinstance(fan, dict) or not fan:
        return None
    return FanFragment(
        fan_id=_as_id(fan.get("fan_id"), fan.get("id")),
        display_name=_first_text(fan.get("name"), fan.get("username")),
        username_slug=fan.get("username") or "",
        collection_count=_as_count(fan.get("collection_count")),
        source="fan_data",
    )


def from_app_data(blob: dict) -> Optional[FanFragment]:
    """Newer front end: appData.identities.fan."""
    fan = dig(blob, "appData", "identities", "fan")
    if not isinstance(fan, dict) or not fan:
        return None
    return FanFragment(
        fan_id=_as_id(fan.get("id"), fan.get("fan_id")),
        display_name=_first_text(fan.get("name"), fan.get("username")),
        username_slug=fan.get("username") or "",
        collection_count=_as_count(fan.get("collection_count")),
        source="appData.identities.fan",
    )


def from_page_fan(blob: dict) -> Optional[FanFragment]:
    """Fan page context: pageContext.pageFan."""
    fan = dig(blob, "pageContext", "pageFan")
    if not isinstance(fan, dict) or not fan:
        return None
    return FanFragment(
        fan_id=_as_id(fan.get("fan_id"), fan.get("id"), fan.get("pageFanId")),
        display_name=_first_text(fan.get("name"), fan.get("username"), fan.get("pageFanUsername")),
        username_slug=fan.get("username") or fan.get("pageFanUsername") or "",
        collection_count=_as_count(fan.get("collection_count"), fan.get("item_count")),
        source="pageContext.pageFan",
    )


FAN_STRATEGIES: tuple[Callable[[dict], Optional[FanFragment]], ...] = (
    from_identities,
    from_fan_data,
    from_app_data,
    from_page_fan,
)


def extract_fan_fragment(blob: dict) -> Optional[FanFragment]:
    """Run the fan-shape strategies in priority order; first match wins."""
    for strategy in FAN_STRATEGIES:
        fragment = strategy(blob)
        if fragment is not None:
            logger.debug(f"Fan data found via {fragment.source}")
            return fragment
    return None


def is_logged_out_blob(blob: dict) -> bool:
    """True when the home blob explicitly says nobody is logged in."""
    identities = blob.get("identities")
    return isinstance(identities, dict) and "fan" in identities and not identities.get("fan")
