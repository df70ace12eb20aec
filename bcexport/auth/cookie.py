"""Turn a pasted Bandcamp cookie into a canonical Cookie header."""
import json
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote

from bcexport.errors import AuthError

logger = logging.getLogger(__name__)

FAN_ID_RE = re.compile(r'"id":\s*(\d+)')
LONG_COMPONENT = 50


@dataclass(frozen=True)
class ParsedCookie:
    """Result of splitting a raw cookie string."""

    identity: str
    session: Optional[str]
    fan_id: Optional[str]
    header: str


def decode_input(raw: str) -> str:
    """
    URL-decode input that looks percent-encoded.
    Malformed escapes leave the original string in place.
    """
    text = raw.strip()
    if "%" not in text:
        return text
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError:
        logger.debug("Cookie is not valid percent-encoding, using it as-is")
        return text


def split_components(decoded: str) -> tuple[Optional[str], Optional[str]]:
    """
    Classify ';'-separated components into (identity, session).
    Later components override earlier ones of the same kind.
    """
    identity = None
    session = None
    for part in decoded.split(";"):
        item = part.strip()
        if not item:
            continue
        lowered = item.lower()
        if lowered.startswith("identity="):
            identity = item[len("identity="):]
        elif lowered.startswith("session="):
            session = item[len("session="):]
        elif item.startswith("{"):
            # raw JSON session object
            session = item
        elif "\t" in item or '{"id"' in item:
            # tab-separated identity token
            identity = item
        elif len(item) > LONG_COMPONENT:
            identity = item
    return identity, session


def fan_id_from_identity(identity: str) -> Optional[str]:
    """Find the fan id inside the identity token: JSON column first, then regex."""
    for segment in identity.split("\t"):
        segment = segment.strip()
        if not (segment.startswith("{") and '"id"' in segment):
            continue
        try:
            meta = json.loads(segment)
        except ValueError:
            continue
        if isinstance(meta, dict) and meta.get("id") and str(meta["id"]).isdigit():
            logger.debug("Fan id found in identity metadata")
            return str(meta["id"])

    match = FAN_ID_RE.search(identity)
    if match:
        logger.debug("Fan id found via regex")
        return match.group(1)
    return None


def build_header(identity: str, session: Optional[str]) -> str:
    """identity=<value>[; session=<value>], encoding a raw JSON session."""
    header = f"identity={identity}"
    if session:
        encoded = quote(session, safe="") if session.startswith("{") else session
        header += f"; session={encoded}"
    return header


def parse_cookie(raw: str) -> ParsedCookie:
    """Parse a pasted cookie. Raises AuthError when no identity part exists."""
    decoded = decode_input(raw or "")
    identity, session = split_components(decoded)
    if not identity:
        raise AuthError("Could not isolate identity part of cookie")
    return ParsedCookie(
        identity=identity,
        session=session,
        fan_id=fan_id_from_identity(identity),
        header=build_header(identity, session),
    )
