"""
Browser session setup for the pharmacy scrapers
Playwright Chromium with stealth, Indian desktop identity
"""

import logging
import random
from playwright.sync_api import sync_playwright, Error as PlaywrightError
from playwright_stealth import Stealth

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
VIEWPORT = {"width": 1366, "height": 768}
LOCALE = "en-IN"
TIMEZONE = "Asia/Kolkata"

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--no-sandbox',
    '--disable-dev-shm-usage',
]


class BrowserSession:
    """One browser process with a single context and page.

    Owned by exactly one caller at a time; close() tears the whole thing down.
    """

    def __init__(self, playwright, browser, context, page):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self.closed = False

    @classmethod
    def launch(cls, headless: bool = True, slow_mo: float = 0,
               user_agent: str = USER_AGENT, viewport: dict = None,
               locale: str = LOCALE, timezone_id: str = TIMEZONE) -> "BrowserSession":
        p = sync_playwright().start()
        try:
            browser = p.chromium.launch(headless=headless, slow_mo=slow_mo, args=LAUNCH_ARGS)
            context = browser.new_context(
                viewport=viewport or VIEWPORT,
                user_agent=user_agent,
                locale=locale,
                timezone_id=timezone_id,
            )
            page = context.new_page()
            Stealth().apply_stealth_sync(page)
        except Exception:
            p.stop()
            raise
        return cls(p, browser, context, page)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.browser.close()
        except PlaywrightError as e:
            logger.warning(f"Browser close failed: {e}")
        finally:
            self.playwright.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def behave_like_human(page):
    """Mouse moves, wheel scrolls and a body click with pauses in between."""
    page.wait_for_timeout(2000)

    page.mouse.move(200, 300, steps=20)
    page.wait_for_timeout(800)

    page.mouse.move(600, 400, steps=25)
    page.wait_for_timeout(1000)

    page.mouse.wheel(0, 600)
    page.wait_for_timeout(1500)

    page.mouse.wheel(0, 800)
    page.wait_for_timeout(1200)

    page.click("body")
    page.wait_for_timeout(1000)


def light_scroll(page, settle_ms: int = 1500):
    """Short wiggle used between paginated loads."""
    page.wait_for_timeout(settle_ms)
    page.mouse.move(random.random() * 500, random.random() * 500)
    page.mouse.wheel(0, 500)
    page.wait_for_timeout(1000)
