"""Resolve a pasted cookie into a verified fan identity."""
import logging
from typing import Optional

from bcexport.auth.cookie import parse_cookie
from bcexport.auth.login_detector import is_login_page
from bcexport.errors import AuthError, ParseError
from bcexport.fetch.bandcamp import BandcampSource
from bcexport.parse.blob import parse_data_blob
from bcexport.parse.fan_data import FanFragment, extract_fan_fragment, is_logged_out_blob
from bcexport.parse.models import ResolvedIdentity
from bcexport.parse.redact import redact_string

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Parses the cookie, then confirms it against the Bandcamp home page."""

    def __init__(self, source: BandcampSource):
        self.source = source

    async def resolve(self, raw_cookie: str) -> ResolvedIdentity:
        """
        Build a ResolvedIdentity from a raw cookie.
        Raises AuthError for unusable or rejected cookies, ApiError when
        Bandcamp cannot be reached.
        """
        logger.info(f"Decoding raw cookie of length {len(raw_cookie or '')}")
        parsed = parse_cookie(raw_cookie)
        logger.debug(f"Reconstructed header: {redact_string(parsed.header)}")

        fragment = await self._verify(parsed.header)

        fan_id = parsed.fan_id or (fragment.fan_id if fragment else None)
        if not fan_id:
            logger.error("Could not resolve fan id after all strategies")
            raise AuthError("cannot resolve fan identifier")

        identity = ResolvedIdentity(
            fan_id=fan_id,
            username_slug=fragment.username_slug if fragment else "",
            canonical_cookie_header=parsed.header,
            display_name=(fragment.display_name if fragment else None) or "Member",
            reported_collection_count=fragment.collection_count if fragment else 0,
        )
        logger.info(
            f"Resolved {identity.display_name} (fan {identity.fan_id}, "
            f"slug {identity.username_slug!r}, count {identity.reported_collection_count})"
        )
        return identity

    async def _verify(self, header: str) -> Optional[FanFragment]:
        """Fetch the home page with the header and read the fan blob."""
        response = await self.source.fetch_home(header)
        if is_login_page(response.status_code, str(response.url)):
            raise AuthError("Bandcamp rejected the session (expired or invalid cookie)")

        try:
            blob = parse_data_blob(response.text)
        except ParseError as e:
            logger.warning(f"Home page blob unavailable: {e}")
            return None

        if is_logged_out_blob(blob):
            raise AuthError("Bandcamp reports no logged-in fan for this cookie")

        fragment = extract_fan_fragment(blob)
        if fragment is None:
            logger.warning("No known fan shape in home page blob")
        return fragment
