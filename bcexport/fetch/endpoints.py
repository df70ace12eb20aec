"""URL builders for Bandcamp endpoints."""
from urllib.parse import quote

from bcexport.config import config
from bcexport.parse.models import ResolvedIdentity


def home_url() -> str:
    """Home page; its data-blob carries the logged-in fan."""
    return f"{config.BASE_URL}/"


def profile_url(identity: ResolvedIdentity) -> str:
    """Fan profile page holding the collection grid."""
    if identity.username_slug:
        return f"{config.BASE_URL}/{quote(identity.username_slug)}"
    return f"{config.BASE_URL}/fan/{identity.fan_id}"


def collection_items_url() -> str:
    return f"{config.BASE_URL}/api/fancollection/1/collection_items"


def hidden_items_url() -> str:
    return f"{config.BASE_URL}/api/fancollection/1/hidden_items"
