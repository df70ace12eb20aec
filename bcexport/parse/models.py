"""Data models for identities, collection pages and purchase rows."""
from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ItemType = Literal["album", "track", "package", "unknown"]
PreorderStatus = Literal["unreleased", "released", "unknown"]
ScrapeStatus = Literal["idle", "scraping", "completed", "error"]

# Raw upstream item: every key is optional
RawItem = dict[str, Any]


class ResolvedIdentity(BaseModel):
    """Fan identity recovered from a cookie and confirmed upstream."""

    model_config = ConfigDict(frozen=True)

    fan_id: str = Field(..., pattern=r"^\d+$", description="Numeric fan identifier")
    username_slug: str = Field(default="", description="Profile slug, may be empty")
    canonical_cookie_header: str = Field(..., description="identity=...; session=...")
    display_name: str = Field(default="Member")
    reported_collection_count: int = Field(default=0, ge=0)


class PurchaseRow(BaseModel):
    """Normalized purchase, one per upstream item."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    purchase_key: str = Field(..., description="<type-code>:<item-id>:<date-or-unknown>")
    purchase_date: Optional[str] = None
    item_type: ItemType = "unknown"
    item_id: Union[int, str, None] = None
    title: str = ""
    artist: str = ""
    item_url: str = ""
    art_url: str = ""
    is_preorder: bool = False
    preorder_status: PreorderStatus = "unknown"
    is_hidden: bool = False
    raw_item: Any = None


class ItemsPage(BaseModel):
    """One page of raw items, from the API or from page extraction."""

    items: list[RawItem] = Field(default_factory=list)
    more_available: bool = False
    last_token: Optional[str] = None
    tracklists: dict[str, Any] = Field(default_factory=dict)
    strategy: str = "api"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ItemsPage":
        """Build a page from a fancollection API payload."""
        items = data.get("items")
        items = items if isinstance(items, list) else []
        tracklists = data.get("tracklists") or {}
        last_token = data.get("last_token")
        return cls(
            items=[item for item in items if isinstance(item, dict)],
            more_available=bool(data.get("more_available")),
            last_token=str(last_token) if last_token else None,
            tracklists=tracklists if isinstance(tracklists, dict) else {},
        )


class ScrapeProgress(BaseModel):
    """Progress of one scrape, published after every page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: ScrapeStatus = "idle"
    items_fetched: int = 0
    pages_fetched: int = 0
    error: Optional[str] = None
