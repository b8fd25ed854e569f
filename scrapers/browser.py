# scrapers/browser.py
#
# Playwright side of the review-page contract, plus the page preparation
# steps (cookie banner, lazy-load scrolling, reviews tab) run before
# extraction starts.

import logging
import re
from typing import List, Optional, Sequence

from playwright.async_api import (
    Locator,
    Page,
    TimeoutError as PWTimeout,
    Error as PWError,
)

from scrapers.errors import ExtractionFault
from scrapers.retailers import RetailerHints
from utils import settings

logger = logging.getLogger(__name__)

CLOSED_TARGET = "Target page, context or browser has been closed"
CONSENT_FRAME_RE = re.compile(r'consent|privacy|onetrust|message', re.I)
REVIEW_SECTION_SELECTORS = [
    "#reviews-section", ".pd-reviews", "[id*='reviews']", "[class*='reviews' i]",
]


class PlaywrightReviewPage:
    """Review-page contract over a Playwright Page; handles are Locators."""

    def __init__(self, page: Page, *, click_timeout_ms: int = 3000):
        self.page = page
        self.click_timeout_ms = click_timeout_ms

    async def snapshot(self) -> str:
        if self.page.is_closed():
            raise ExtractionFault(CLOSED_TARGET)
        try:
            return await self.page.content()
        except PWError as e:
            raise ExtractionFault(f"Could not read page content: {e}") from e

    async def query(self, selectors: Sequence[str]) -> List[Locator]:
        for sel in selectors:
            try:
                loc = self.page.locator(sel)
                count = await loc.count()
                if not count:
                    continue
                handles = [loc.nth(i) for i in range(count)]
                visible = [h for h in handles if await h.is_visible()]
                if visible:
                    return visible
            except PWError as e:
                if CLOSED_TARGET in str(e):
                    raise ExtractionFault(str(e)) from e
                logger.debug("Selector %r failed: %s", sel, e)
        return []

    async def get_text(self, handle: Locator) -> str:
        try:
            return " ".join((await handle.inner_text()).split())
        except PWError as e:
            raise ExtractionFault(f"Could not read text: {e}") from e

    async def get_attribute(self, handle: Locator, name: str) -> Optional[str]:
        try:
            return await handle.get_attribute(name)
        except PWError as e:
            raise ExtractionFault(f"Could not read attribute {name}: {e}") from e

    async def activate(self, handle: Locator) -> bool:
        try:
            await handle.scroll_into_view_if_needed(timeout=2000)
        except PWError:
            pass
        try:
            await handle.click(timeout=self.click_timeout_ms)
            return True
        except PWError as e:
            logger.debug("Direct click failed, trying script click: %s", e)
        try:
            await handle.evaluate("el => el.click()")
            return True
        except PWError as e:
            logger.warning("Could not activate pagination control: %s", e)
            return False

    async def wait_settled(self, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PWTimeout:
            pass
        await self.page.wait_for_timeout(250)


# -------- Safe wrappers to avoid closed-target errors --------
async def safe_page_close(page: Optional[Page]):
    try:
        if page and not page.is_closed():
            await page.close()
    except PWError as e:
        logger.debug("Ignoring error while closing page: %s", e)


# -----------------------------
# Page preparation
# -----------------------------
async def accept_cookies(page: Page, selectors: Sequence[str]) -> bool:
    # Try on main page first
    for sel in selectors:
        try:
            loc = page.locator(sel)
            if await loc.count() > 0:
                await loc.first.click(timeout=2000)
                await page.wait_for_timeout(300)
                logger.info("Accepted cookie banner via %s", sel)
                return True
        except PWError:
            continue

    # Then inside consent iframes
    for frame in page.frames:
        title = f"{getattr(frame, 'name', '')} {getattr(frame, 'url', '')}"
        if not CONSENT_FRAME_RE.search(title):
            continue
        for sel in selectors:
            try:
                loc = frame.locator(sel)
                if await loc.count() > 0 and await loc.first.is_visible():
                    await loc.first.click(timeout=2000)
                    await page.wait_for_timeout(300)
                    logger.info("Accepted cookie banner in frame %s", title.strip())
                    return True
            except PWError:
                continue

    return False


async def scroll_page(page: Page, steps: int = 3, delta: int = 800):
    """Wheel down in steps so lazily rendered review widgets attach."""
    for _ in range(steps):
        try:
            await page.mouse.wheel(0, delta)
            await page.wait_for_timeout(300)
        except PWError:
            break


async def open_reviews_tab(page: Page, selectors: Sequence[str]) -> bool:
    for sel in selectors:
        try:
            loc = page.locator(sel)
            if await loc.count() == 0:
                continue
            tab = loc.first
            try:
                await tab.click(timeout=3000)
            except PWError:
                await tab.evaluate("el => el.click()")
            await page.wait_for_timeout(800)
            logger.info("Opened reviews tab via %s", sel)
            return True
        except PWError as e:
            logger.debug("Reviews tab selector %r failed: %s", sel, e)
    return False


async def scroll_to_reviews(page: Page) -> bool:
    for sel in REVIEW_SECTION_SELECTORS:
        try:
            loc = page.locator(sel)
            if await loc.count() > 0:
                await loc.first.scroll_into_view_if_needed(timeout=2000)
                await page.wait_for_timeout(400)
                return True
        except PWError:
            continue
    return False


async def prepare_page(page: Page, hints: RetailerHints):
    await accept_cookies(page, hints.cookie_selectors)
    await scroll_page(page, hints.scroll_steps)
    await open_reviews_tab(page, hints.reviews_tab_selectors)
    await scroll_to_reviews(page)
    try:
        await page.wait_for_load_state("networkidle", timeout=settings.SETTLE_TIMEOUT_MS)
    except PWTimeout:
        pass
