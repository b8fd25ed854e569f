# scrapers/reviews.py

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncContextManager, Callable, Dict, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    Page,
    Error as PWError,
)

from scrapers.browser import PlaywrightReviewPage, prepare_page, safe_page_close
from scrapers.errors import PageFault, RunFault
from scrapers.models import CanonicalReview, RawReview, ScrapeResult
from scrapers.pagination import ReviewPage, collect_reviews
from scrapers.retailers import RetailerHints, detect_retailer, hints_for, product_info_from_url
from utils import settings
from utils.csv_export import assemble_csv, csv_filename
from utils.date_range import in_range
from utils.dates import normalize_date
from utils.dedupe import ReviewDeduper, review_fingerprint
from utils.robots import RobotsPolicy

logger = logging.getLogger(__name__)

Emit = Callable[[str, Dict], None]
OpenPage = Callable[[str, RetailerHints], AsyncContextManager[ReviewPage]]


def _no_emit(event: str, data: Dict) -> None:
    pass


def _status(url: str, step: str, detail: str = "", pages: Optional[int] = None,
            reviews: Optional[int] = None) -> Dict:
    return {"retailer": detect_retailer(url), "url": url, "step": step, "detail": detail,
            "pages": pages, "reviews": reviews}


# -----------------------------
# Raw -> canonical
# -----------------------------
def canonicalize(
    raws: List[RawReview], *, url: str, retailer: str, product_id: str, product_name: str,
    extracted_at: datetime, locale: str, date_from: Optional[date] = None,
    date_to: Optional[date] = None, today: Optional[date] = None,
) -> List[CanonicalReview]:
    out = []
    for raw in raws:
        parsed = normalize_date(raw.raw_date, locale=locale, today=today)
        out.append(CanonicalReview(
            rating=raw.rating,
            title=raw.title,
            raw_date=raw.raw_date,
            text=raw.text,
            canonical_date=parsed,
            source_url=url,
            retailer=retailer,
            product_id=product_id,
            product_name=product_name,
            extracted_at=extracted_at,
            unique_id=review_fingerprint(raw),
            in_date_range=in_range(parsed, date_from, date_to),
            author=raw.author,
            low_confidence=raw.low_confidence,
        ))
    return out


# -----------------------------
# Run driver
# -----------------------------
async def scrape_product(
    url: str, open_page: OpenPage, *, max_reviews: int, locale: Optional[str],
    date_from: Optional[date], date_to: Optional[date], robots: Optional[RobotsPolicy],
    status: List[Dict], today: Optional[date] = None, extracted_at: Optional[datetime] = None,
) -> List[CanonicalReview]:
    """One product URL -> its canonical reviews. Failures surface as PageFault."""
    hints = hints_for(url)
    if robots is not None and not await robots.allowed(url):
        status.append(_status(url, "robots_blocked"))
        raise PageFault(url, "Blocked by robots.txt")

    try:
        async with open_page(url, hints) as page:
            outcome = await collect_reviews(page, hints, max_reviews=max_reviews)
    except PageFault:
        raise
    except Exception as e:
        raise PageFault(url, f"Failed to scrape page: {e}") from e

    if not outcome.reviews:
        status.append(_status(url, "no_reviews", outcome.stop_reason, outcome.pages, 0))
        raise PageFault(url, "No reviews found on this page")
    status.append(_status(url, "reviews_found", outcome.stop_reason, outcome.pages, len(outcome.reviews)))

    product_id, product_name = product_info_from_url(url)
    logger.info("Product %s (%s): %d reviews", product_name, product_id, len(outcome.reviews))
    return canonicalize(
        outcome.reviews, url=url, retailer=hints.name, product_id=product_id,
        product_name=product_name, extracted_at=extracted_at or datetime.now().astimezone(),
        locale=locale or hints.locale or settings.DEFAULT_LOCALE,
        date_from=date_from, date_to=date_to, today=today,
    )


async def run_scrape(
    urls: List[str],
    open_page: OpenPage,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    max_reviews: Optional[int] = None,
    locale: Optional[str] = None,
    robots: Optional[RobotsPolicy] = None,
    emit: Optional[Emit] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> ScrapeResult:
    """
    Products are processed strictly one after another. A failing product is
    reported as url_error and skipped; a run with no reviews at all raises
    RunFault after emitting error.

    ``now`` is the run's single clock (local time): it stamps "Extracted On",
    and its date is the extraction date unless ``today`` is given.
    """
    emit = emit or _no_emit
    run_at = now or datetime.now().astimezone()
    today = today or run_at.date()
    max_reviews = settings.DEFAULT_MAX_REVIEWS if max_reviews is None else max_reviews
    result = ScrapeResult(total_products=len(urls))
    seen = ReviewDeduper()

    try:
        emit("start", {"totalUrls": len(urls)})
        for i, url in enumerate(urls, start=1):
            if should_stop is not None and should_stop():
                logger.info("Run cancelled before %s", url)
                result.cancelled = True
                result.status_rows.append(_status(url, "cancelled"))
                break
            emit("progress", {"current": i, "total": len(urls), "url": url})
            try:
                reviews = await scrape_product(
                    url, open_page, max_reviews=max_reviews, locale=locale,
                    date_from=date_from, date_to=date_to, robots=robots,
                    status=result.status_rows, today=today, extracted_at=run_at,
                )
            except PageFault as e:
                logger.error("Error processing %s: %s", e.url, e.message)
                result.status_rows.append(_status(url, "exception", e.message))
                emit("url_error", {"url": e.url, "message": e.message})
                continue
            fresh = seen.filter_new(reviews)
            if len(fresh) < len(reviews):
                logger.info("Dropped %d reviews already seen in this run", len(reviews) - len(fresh))
            result.reviews.extend(fresh)
            result.successful_products += 1

        if not result.reviews:
            raise RunFault("No reviews were found for any of the provided URLs")

        result.filename = csv_filename(today)
        result.csv_content = assemble_csv(
            result.reviews, total_products=result.total_products,
            date_from=date_from, date_to=date_to, extraction_date=today,
        )
    except RunFault as e:
        emit("error", {"message": str(e)})
        raise
    except Exception as e:
        logger.exception("Unexpected run failure")
        emit("error", {"message": str(e)})
        raise RunFault(str(e)) from e

    emit("complete", {
        "filename": result.filename,
        "csvContent": result.csv_content,
        "totalReviews": len(result.reviews),
        "totalProducts": result.total_products,
        "successfulProducts": result.successful_products,
    })
    return result


# -----------------------------
# Browser lifecycle
# -----------------------------
async def scrape_many(
    urls: List[str],
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    max_reviews: Optional[int] = None,
    locale: Optional[str] = None,
    respect_robots: bool = True,
    emit: Optional[Emit] = None,
    should_stop: Optional[Callable[[], bool]] = None,
    headed: bool = False,
    slow_mo_ms: int = 0,
    trace_path: Optional[str] = None,
    console_log_path: Optional[str] = None,
) -> ScrapeResult:
    # Default debug outputs under logs/
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    logs_dir = Path(settings.LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    if console_log_path is None:
        console_log_path = str(logs_dir / f"console-{ts}.log")

    emit = emit or _no_emit
    robots = RobotsPolicy() if respect_robots else None

    with open(console_log_path, "a", encoding="utf-8") as console_fh:
        try:
            async with async_playwright() as p:
                browser: Browser = await p.chromium.launch(
                    headless=settings.HEADLESS and not headed,
                    slow_mo=slow_mo_ms or 0,
                )
                try:
                    context = await browser.new_context(
                        viewport={"width": 1366, "height": 900},
                        user_agent=settings.USER_AGENT,
                        locale="en-GB",
                    )
                    # UK environment
                    await context.add_init_script("""
Object.defineProperty(navigator, 'languages', {get: () => ['en-GB','en']});
""")

                    # ---- Console logging (file) ----
                    def _on_new_page(page: Page):
                        def _log(msg):
                            line = (
                                f"{datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')} "
                                f"[chromium:{msg.type}] {msg.text}"
                            )
                            console_fh.write(line + "\n")
                            console_fh.flush()
                        page.on("console", _log)
                    context.on("page", _on_new_page)

                    if trace_path:
                        await context.tracing.start(screenshots=True, snapshots=True, sources=True)

                    @asynccontextmanager
                    async def open_page(url: str, hints: RetailerHints):
                        page = await context.new_page()
                        page.set_default_timeout(settings.DEFAULT_TIMEOUT_MS)
                        page.set_default_navigation_timeout(settings.NAVIGATION_TIMEOUT_MS)
                        try:
                            try:
                                await page.goto(url, wait_until="domcontentloaded")
                            except PWError as e:
                                raise PageFault(url, f"Navigation failed: {e}") from e
                            logger.info("Navigated to %s", url)
                            await prepare_page(page, hints)
                            yield PlaywrightReviewPage(page)
                        finally:
                            await safe_page_close(page)

                    try:
                        return await run_scrape(
                            urls, open_page, date_from=date_from, date_to=date_to,
                            max_reviews=max_reviews, locale=locale, robots=robots,
                            emit=emit, should_stop=should_stop,
                        )
                    finally:
                        if trace_path:
                            await context.tracing.stop(path=trace_path)
                        await context.close()
                finally:
                    await browser.close()
        except RunFault:
            # run_scrape already emitted error
            raise
        except Exception as e:
            logger.exception("Browser session failed")
            message = f"Browser session failed: {e}"
            emit("error", {"message": message})
            raise RunFault(message) from e
