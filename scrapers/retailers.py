# scrapers/retailers.py
#
# Retailer detection, product identity from URLs, and the per-retailer
# selector tables the generic extractor and pagination driver run on.

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from scrapers.models import SelectorStrategy
from utils.dates import LOCALE_US

logger = logging.getLogger(__name__)

TESCO = "tesco"
SAINSBURYS = "sainsburys"
ASDA = "asda"
MORRISONS = "morrisons"
GENERIC = "generic"

DOMAINS = {
    "tesco.com": TESCO,
    "sainsburys.co.uk": SAINSBURYS,
    "asda.com": ASDA,
    "morrisons.com": MORRISONS,
}

WEIGHT_SUFFIX_RE = re.compile(r'\d+g$')
TRAILING_DIGITS_RE = re.compile(r'\d+$')


@dataclass(frozen=True)
class RetailerHints:
    name: str
    strategies: Tuple[SelectorStrategy, ...]
    next_selectors: Tuple[str, ...] = ()
    load_more_selectors: Tuple[str, ...] = ()
    max_pages: int = 5
    cookie_selectors: Tuple[str, ...] = ()
    reviews_tab_selectors: Tuple[str, ...] = ()
    # None -> settings.DEFAULT_LOCALE at scrape time
    locale: Optional[str] = None
    label: str = ""
    scroll_steps: int = 3


# -----------------------------
# Shared selector sets
# -----------------------------
COOKIE_SELECTORS = (
    "#onetrust-accept-btn-handler",
    "button[data-auto-id='onetrust-accept-btn-handler']",
    "button:has-text('Accept all cookies')",
    "button:has-text('Accept All Cookies')",
    "button[id*='accept-cookies']",
)

REVIEWS_TAB_SELECTORS = (
    "[data-testid='tab-reviews']",
    "a[href='#reviews']",
    "div[role='tab']:has-text('Reviews')",
    "button:has-text('Reviews')",
)

GENERIC_STRATEGY = SelectorStrategy(
    name="generic",
    container=(
        "[class*='review-container' i]",
        "[class*='review-card' i]",
        "[class*='review-item' i]",
        "[data-testid*='review' i]",
        "[class*='review' i]",
        "[id*='review' i] li",
    ),
    rating=(
        "[class*='rating' i]",
        "[class*='stars' i]",
        "[aria-label*='out of 5' i]",
        "[title*='rating' i]",
    ),
    title=(
        "[class*='review-title' i]",
        "[class*='title' i]",
        "h3",
        "h4",
        "strong",
    ),
    date=(
        "time",
        "[class*='date' i]",
        "[class*='submitted' i]",
    ),
    text=(
        "[class*='review-text' i]",
        "[class*='review-content' i]",
        "[class*='content' i]",
        "[class*='body' i]",
        "p",
    ),
)


# -----------------------------
# Per-retailer tables
# -----------------------------
RETAILER_HINTS: Dict[str, RetailerHints] = {
    TESCO: RetailerHints(
        name=TESCO,
        label="Tesco",
        strategies=(
            SelectorStrategy(
                name="tesco-mfe",
                container=(
                    "div[class*='ReviewTileContainer']",
                    "div[data-auto='review-card']",
                    "div[class*='review-card']",
                ),
                rating=("div[class*='ReviewRating-mfe-pdp']", "div[data-auto='review-rating']"),
                title=("h3[class*='Title-mfe-pdp']", "div[data-auto='review-title']"),
                date=("span[class*='ReviewDate-mfe-pdp']", "div[data-auto='review-date']"),
                text=("span[class*='Content-mfe-pdp']", "div[data-auto='review-text']"),
            ),
            SelectorStrategy(
                name="tesco-legacy",
                container=(".review", ".product-review", ".review-container"),
                rating=(".rating", ".stars", "[data-rating]"),
                title=(".review-title", "h3", "h4"),
                date=(".review-date", ".date", "time"),
                text=(".review-text", ".review-content", "p"),
            ),
            GENERIC_STRATEGY,
        ),
        load_more_selectors=(
            "button[data-auto='load-more-reviews']",
            "button[class*='load-more']",
            "button:has-text('Show more reviews')",
            "button:has-text('Load more reviews')",
            "button:has-text('Show more')",
        ),
        max_pages=4,
        cookie_selectors=COOKIE_SELECTORS,
        reviews_tab_selectors=REVIEWS_TAB_SELECTORS,
    ),
    SAINSBURYS: RetailerHints(
        name=SAINSBURYS,
        label="Sainsburys",
        strategies=(
            SelectorStrategy(
                name="sainsburys-pd",
                container=(".pd-reviews__review-container", "div[id^='id_']"),
                rating=("div.review__star-rating", "[title*='Rating']", "[aria-label*='Rating']"),
                title=("div.review__title",),
                date=("div.review__date",),
                text=("div.review__content[data-testid='review-content']", "div.review__content"),
            ),
            GENERIC_STRATEGY,
        ),
        next_selectors=(
            "[data-testid='pagination-next']",
            ".ds-pagination__next",
            "a[aria-label='Next page']",
        ),
        max_pages=5,
        cookie_selectors=COOKIE_SELECTORS,
        reviews_tab_selectors=REVIEWS_TAB_SELECTORS,
    ),
    ASDA: RetailerHints(
        name=ASDA,
        label="ASDA",
        strategies=(
            SelectorStrategy(
                name="asda-pdp",
                container=("div.pdp-description-reviews__content-cntr",),
                rating=("div.rating-stars__stars--top[style*='width']", "div.rating-stars"),
                title=("span.pdp-description-reviews__rating-title",),
                date=("div.pdp-description-reviews__submitted-date",),
                text=("p.pdp-description-reviews__content-text",),
            ),
            GENERIC_STRATEGY,
        ),
        next_selectors=(
            "a[aria-label='go to next page of results']",
            "button[data-auto-id='pagination-next']",
        ),
        max_pages=5,
        cookie_selectors=COOKIE_SELECTORS,
        reviews_tab_selectors=("button:has-text('Reviews')", "[data-auto-id='tab-reviews']"),
        # ASDA renders numeric review dates month-first
        locale=LOCALE_US,
    ),
    MORRISONS: RetailerHints(
        name=MORRISONS,
        label="Morrisons",
        strategies=(
            SelectorStrategy(
                name="morrisons-list",
                container=("li[data-test^='review-item-']",),
                rating=("svg[data-test='icon__reviews']", "[aria-label*='out of 5']"),
                title=("h4",),
                date=("span:-soup-contains('Submitted')", "span[class*='date']"),
                text=("p[class*='review']", "div[data-test='review-body'] p", "p"),
            ),
            GENERIC_STRATEGY,
        ),
        next_selectors=(
            "button[data-test='next-page']",
            "button[aria-label='See next page.']",
        ),
        max_pages=10,
        cookie_selectors=COOKIE_SELECTORS,
        reviews_tab_selectors=REVIEWS_TAB_SELECTORS,
    ),
    GENERIC: RetailerHints(
        name=GENERIC,
        label="",
        strategies=(GENERIC_STRATEGY,),
        next_selectors=(
            "a[rel='next']",
            "[aria-label*='next page' i]",
            "button:has-text('Next')",
        ),
        load_more_selectors=(
            "button[class*='load-more' i]",
            "button:has-text('Load more')",
            "button:has-text('Show more')",
        ),
        max_pages=5,
        cookie_selectors=COOKIE_SELECTORS,
        reviews_tab_selectors=REVIEWS_TAB_SELECTORS,
    ),
}


# -----------------------------
# Utility
# -----------------------------
def domain_key(url: str) -> str:
    host = urlparse(url).hostname or ""
    parts = host.split(".")
    if len(parts) >= 3 and parts[-2] == "co":
        return ".".join(parts[-3:])
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return host


def detect_retailer(url: str) -> str:
    if not url:
        return GENERIC
    return DOMAINS.get(domain_key(url.lower()), GENERIC)


def hints_for(url: str) -> RetailerHints:
    return RETAILER_HINTS[detect_retailer(url)]


def normalize_url(raw: str) -> str:
    url = raw.strip()
    if url and not re.match(r'^https?://', url, re.IGNORECASE):
        url = "https://" + url
    return url


def _slug_to_name(slug: str) -> str:
    name = slug.replace("-", " ")
    name = WEIGHT_SUFFIX_RE.sub("", name)
    name = TRAILING_DIGITS_RE.sub("", name)
    name = " ".join(name.split())
    return " ".join(w[:1].upper() + w[1:] for w in name.split(" ") if w)


def product_info_from_url(url: str) -> Tuple[str, str]:
    """(product_id, product_name) derived from the URL path alone."""
    try:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
    except ValueError as e:
        logger.warning("Could not derive product info from %s: %s", url, e)
        return "unknown", f"Product from {url}"

    parts = parsed.path.split("/")
    last = parts[-1] if parts else ""
    product_id = last or "unknown"
    retailer = detect_retailer(url)

    if retailer == ASDA:
        if len(parts) >= 3:
            return product_id, f"ASDA {_slug_to_name(parts[-2])}"
        return product_id, f"ASDA Product {last}"

    name = _slug_to_name(last) if last else ""
    if len(name) < 3:
        name = f"Product from {url}"
    label = RETAILER_HINTS[retailer].label
    if label:
        name = f"{label} {name}"
    return product_id, name


def parse_url_list(text: str) -> List[str]:
    """Newline-separated URLs; blank lines dropped, missing scheme -> https."""
    return [normalize_url(line) for line in (text or "").splitlines() if line.strip()]
