"""
Error types shared by the pharmacy scrapers
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for scraper failures."""


class TokenNotFound(ScraperError):
    """No bearer token was observed before the wait ran out."""


class TokenExpired(ScraperError):
    """The API rejected the bearer token."""


class ApiError(ScraperError):
    """Any other API failure: network, bad status, malformed body, business error."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class ExtractionEmpty(ScraperError):
    """A listing page yielded zero records (end of results or changed layout)."""


class TokenRefreshFailed(ScraperError):
    """A replacement token could not be obtained after expiry. The client stays failed."""


# Errors that end a whole run rather than a single item
FATAL_ERRORS = (TokenNotFound, TokenRefreshFailed)
