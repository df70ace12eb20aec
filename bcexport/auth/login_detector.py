"""Detect responses that mean the Bandcamp session is not valid."""
import logging

logger = logging.getLogger(__name__)

REJECTED_STATUSES = (401, 403)


def is_login_page(status_code: int, final_url: str) -> bool:
    """
    Detect if a response is Bandcamp turning the session away.
    True when the status is 401/403 or we ended up on the login page.
    """
    if status_code in REJECTED_STATUSES:
        return True

    url_lower = final_url.lower()
    # /login and /login?from=... after following redirects
    if "/login" in url_lower:
        return True

    return False
