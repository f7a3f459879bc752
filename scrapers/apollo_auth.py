#!/usr/bin/env python3
"""
Apollo Pharmacy token bootstrap
Opens the storefront in a browser and captures the bearer token from its own API traffic.
"""

import logging
import queue
from typing import Callable, Optional

from scrapers.browser import BrowserSession
from scrapers.errors import TokenNotFound

logger = logging.getLogger(__name__)

APOLLO_HOME = "https://www.apollopharmacy.in/"
NAVIGATION_TIMEOUT_MS = 60000
TOKEN_WAIT_SECONDS = 30.0
POLL_INTERVAL_SECONDS = 0.5


def bearer_token(headers: dict) -> Optional[str]:
    """Return the credential from an `authorization: Bearer <value>` header, if any."""
    auth = headers.get("authorization") or headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        return None
    token = auth[len("Bearer "):].strip()
    return token or None


def _latest(captured: queue.SimpleQueue, current: Optional[str]) -> Optional[str]:
    while True:
        try:
            current = captured.get_nowait()
        except queue.Empty:
            return current


def acquire_token(target_url: str = APOLLO_HOME,
                  timeout: float = TOKEN_WAIT_SECONDS,
                  poll_interval: float = POLL_INTERVAL_SECONDS,
                  session_factory: Callable[[], BrowserSession] = BrowserSession.launch):
    """
    Open a fresh browser session and wait for a bearer token.

    Args:
        target_url: Page whose own requests carry the token
        timeout: Total seconds to wait for a token after navigation
        poll_interval: Seconds between checks
        session_factory: Creates the BrowserSession (swapped out in tests)

    Returns:
        (token, session) - the session stays open and belongs to the caller

    Raises:
        TokenNotFound: nothing captured within `timeout`; the session is closed
    """
    session = session_factory()
    page = session.page
    captured = queue.SimpleQueue()

    def on_request(request):
        token = bearer_token(request.headers)
        if token:
            captured.put(token)

    try:
        page.on("request", on_request)
        page.goto(target_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)

        token = None
        polls = max(1, round(timeout / poll_interval))
        for _ in range(polls):
            token = _latest(captured, token)
            if token:
                break
            page.wait_for_timeout(poll_interval * 1000)
        token = _latest(captured, token)
        page.remove_listener("request", on_request)
    except Exception:
        session.close()
        raise

    if not token:
        session.close()
        raise TokenNotFound(f"Auth token not captured from {target_url} within {timeout:g}s")

    logger.info(f"Session ready - token {token[:15]}...")
    return token, session


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
    token, session = acquire_token()
    try:
        print(f"Token: {token[:10]}...")
    finally:
        session.close()
