"""Error taxonomy for the exporter."""
from typing import Optional

AUTH_HINT = "Log in to Bandcamp again and copy a fresh cookie."


class ExporterError(Exception):
    """Base class for all exporter errors."""


class AuthError(ExporterError):
    """Cookie could not be parsed, or Bandcamp rejected the session."""

    def user_message(self) -> str:
        return f"{self} ({AUTH_HINT})"


class ApiError(ExporterError):
    """An upstream request failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(ExporterError):
    """An embedded JSON blob could not be located or decoded."""
