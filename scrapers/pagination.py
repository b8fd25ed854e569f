# scrapers/pagination.py
#
# Drives "next page" / "show more" controls on one product page and
# accumulates the reviews each snapshot yields.

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence, Union

from scrapers.errors import ExtractionFault
from scrapers.extractor import extract_reviews
from scrapers.models import RawReview
from scrapers.retailers import RetailerHints
from utils import settings
from utils.dedupe import ReviewDeduper

logger = logging.getLogger(__name__)

# -------- Stop reasons --------
STOP_MAX_REVIEWS = "max_reviews"
STOP_MAX_PAGES = "max_pages"
STOP_NO_CONTROL = "no_control"
STOP_DISABLED = "control_disabled"
STOP_ACTIVATION_FAILED = "activation_failed"
STOP_STALLED = "stalled"


class ReviewPage(Protocol):
    """What the pipeline needs from a loaded product page."""

    async def snapshot(self) -> str: ...

    async def query(self, selectors: Sequence[str]) -> List[Any]: ...

    async def get_text(self, handle: Any) -> str: ...

    async def get_attribute(self, handle: Any, name: str) -> Optional[str]: ...

    async def activate(self, handle: Any) -> bool: ...

    async def wait_settled(self, timeout_ms: int) -> None: ...


@dataclass
class PaginationOutcome:
    reviews: List[RawReview] = field(default_factory=list)
    pages: int = 0
    activations: int = 0
    stop_reason: str = STOP_NO_CONTROL


async def _extract_page(page: ReviewPage, hints: RetailerHints,
                        default_rating: Union[str, int, None]) -> List[RawReview]:
    try:
        html = await page.snapshot()
        return extract_reviews(html, hints.strategies, default_rating=default_rating)
    except ExtractionFault as e:
        logger.error("Snapshot failed, counting page as empty: %s", e)
    except Exception as e:
        logger.error("Unexpected extraction error, counting page as empty: %s", e)
    return []


async def find_control(page: ReviewPage, hints: RetailerHints) -> Optional[Any]:
    for selectors in (hints.load_more_selectors, hints.next_selectors):
        if not selectors:
            continue
        try:
            handles = await page.query(selectors)
        except Exception as e:
            logger.error("Control lookup failed: %s", e)
            return None
        if handles:
            return handles[0]
    return None


async def is_disabled(page: ReviewPage, handle: Any) -> bool:
    try:
        if await page.get_attribute(handle, "disabled") is not None:
            return True
        if (await page.get_attribute(handle, "aria-disabled") or "").strip().lower() == "true":
            return True
        return "disabled" in (await page.get_attribute(handle, "class") or "").lower()
    except Exception as e:
        logger.error("Could not read control state, treating as disabled: %s", e)
        return True


async def collect_reviews(
    page: ReviewPage,
    hints: RetailerHints,
    *,
    max_reviews: Optional[int] = None,
    stall_limit: Optional[int] = None,
    settle_timeout_ms: Optional[int] = None,
    default_rating: Union[str, int, None] = None,
) -> PaginationOutcome:
    """
    EXTRACTING -> CHECKING_FOR_MORE -> (EXTRACTING | DONE).

    Growth is measured on the de-duplicated accumulator, so cumulative
    "load more" pages and replacing "next page" pages behave the same.
    """
    max_reviews = settings.DEFAULT_MAX_REVIEWS if max_reviews is None else max_reviews
    stall_limit = settings.STALL_LIMIT if stall_limit is None else stall_limit
    settle_timeout_ms = settings.SETTLE_TIMEOUT_MS if settle_timeout_ms is None else settle_timeout_ms

    deduper = ReviewDeduper()
    outcome = PaginationOutcome()
    stalls = 0

    while True:
        # ---- EXTRACTING ----
        before = len(outcome.reviews)
        batch = await _extract_page(page, hints, default_rating)
        outcome.pages += 1
        outcome.reviews.extend(deduper.filter_new(batch))
        grown = len(outcome.reviews) - before
        logger.info("%s page %d: %d visible, %d new, %d total",
                    hints.name, outcome.pages, len(batch), grown, len(outcome.reviews))

        if outcome.activations:
            stalls = 0 if grown > 0 else stalls + 1
            if stalls >= stall_limit:
                outcome.stop_reason = STOP_STALLED
                break
        if len(outcome.reviews) >= max_reviews:
            outcome.stop_reason = STOP_MAX_REVIEWS
            break

        # ---- CHECKING_FOR_MORE ----
        if outcome.pages >= hints.max_pages:
            outcome.stop_reason = STOP_MAX_PAGES
            break
        control = await find_control(page, hints)
        if control is None:
            outcome.stop_reason = STOP_NO_CONTROL
            break
        if await is_disabled(page, control):
            outcome.stop_reason = STOP_DISABLED
            break
        if not await page.activate(control):
            outcome.stop_reason = STOP_ACTIVATION_FAILED
            break
        outcome.activations += 1
        await page.wait_settled(settle_timeout_ms)

    outcome.reviews = outcome.reviews[:max_reviews]
    logger.info("%s pagination done after %d pages (%s), %d reviews",
                hints.name, outcome.pages, outcome.stop_reason, len(outcome.reviews))
    return outcome
