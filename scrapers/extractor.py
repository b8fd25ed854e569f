# scrapers/extractor.py
#
# HTML snapshot -> raw review records, driven by ranked SelectorStrategy lists.

import logging
import math
import re
from typing import Iterable, List, Optional, Sequence, Union

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

from scrapers.errors import ExtractionFault
from scrapers.models import (
    DEFAULT_TITLE, RATING_UNKNOWN, UNKNOWN_DATE,
    Rating, RawReview, SelectorStrategy,
)
from utils import settings

logger = logging.getLogger(__name__)


# -------- Rating / text regex helpers --------
RATING_TEXT_RES = [
    re.compile(r'(\d(?:\.\d)?)\s*out\s+of\s+5\b', re.IGNORECASE),
    re.compile(r'(\d(?:\.\d)?)\s*(?:of\s+5\s+)?stars?\b', re.IGNORECASE),
    re.compile(r'\brated\s+(\d(?:\.\d)?)\b', re.IGNORECASE),
    re.compile(r'\brating\s*:?\s*(\d(?:\.\d)?)\b', re.IGNORECASE),
]
WIDTH_RE      = re.compile(r'width\s*:\s*(\d+(?:\.\d+)?)\s*%', re.IGNORECASE)
RATED_TAIL_RE = re.compile(r'\s*Rated\s+\d.*$', re.IGNORECASE | re.DOTALL)
SUBMITTED_BY_RE = re.compile(r',?\s*by\s+(.+)$', re.IGNORECASE)
RATING_PHRASE_RES = [
    re.compile(r'\d(?:\.\d)?\s*out\s+of\s+5(?:\s*stars)?', re.IGNORECASE),
    re.compile(r'rated\s+\d(?:\.\d)?(?:\s*out\s+of\s+5)?', re.IGNORECASE),
    re.compile(r'rating\s+\d\s+out\s+of\s+\d', re.IGNORECASE),
    re.compile(r'\d(?:\.\d)?\s*stars?\b', re.IGNORECASE),
]
DATE_HINT_RE = re.compile(
    r'\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b|\b\d{4}-\d{2}-\d{2}\b|\bago\b|'
    r'\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{4}\b',
    re.IGNORECASE,
)

UI_CHROME = [
    "Yes, I recommend this product", "No, I don't recommend this product",
    "Report as inappropriate", "Was this helpful?", "Verified Purchase",
    "Read more", "Show more", "See more", "Reviewed in", "Reviewed on",
    "Posted on", "Submitted on", "Helpful", "Report", "Flag", "Share", "Reply",
]
UI_CHROME_RE = re.compile(
    r'\b(?:' + "|".join(re.escape(p) for p in UI_CHROME) + r')(?=\W|$)', re.IGNORECASE
)

FILLED_STAR_SELECTORS = (
    ".filled-star, .star-filled, .icon-star-full, [class*='star-full' i], "
    "[class*='star-filled' i], [data-filled='true'], [class*='filled' i], "
    "svg[data-test='icon__reviews']"
)
EMPTY_STAR_RE = re.compile(r'unfilled|empty|outline', re.IGNORECASE)

HEURISTIC_TAGS = ["p", "div", "span"]
HEURISTIC_HINTS = "[class*='star' i], [class*='rating' i], time, [class*='date' i]"
LANDMARKS = ["nav", "header", "footer"]


# -----------------------------
# Small DOM helpers
# -----------------------------
def _clean(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def _text(node: Tag) -> str:
    return _clean(node.get_text(separator=" "))


def _select(scope: Tag, selectors: Sequence[str]) -> List[Tag]:
    """First selector in the disjunction that matches anything wins."""
    for sel in selectors:
        try:
            found = scope.select(sel)
        except sv.SelectorSyntaxError:
            logger.debug("Skipping unsupported selector %r", sel)
            continue
        if found:
            return found
    return []


def _as_soup(snapshot: Union[str, Tag, None]) -> Tag:
    if snapshot is None:
        raise ExtractionFault("No DOM snapshot available")
    if isinstance(snapshot, Tag):
        return snapshot
    soup = BeautifulSoup(snapshot, "html.parser")
    for junk in soup(["script", "style", "noscript", "template"]):
        junk.decompose()
    return soup


def resolve_default_rating(value: Union[str, int, None] = None) -> Rating:
    raw = settings.DEFAULT_RATING if value is None else value
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return RATING_UNKNOWN
    return n if 1 <= n <= 5 else RATING_UNKNOWN


def _half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _valid_rating(n: int, source: str) -> Optional[int]:
    if 1 <= n <= 5:
        return n
    logger.warning("Discarding out-of-range rating %s parsed from %s", n, source)
    return None


# -----------------------------
# Field extraction
# -----------------------------
def _rating_from_text(scope: Tag) -> Optional[int]:
    candidates = [_text(scope)]
    for node in [scope, *scope.find_all(True)]:
        for attr in ("aria-label", "title", "data-rating"):
            val = node.get(attr)
            if val:
                candidates.append(_clean(val))
    for text in candidates:
        if not text:
            continue
        if text.replace(".", "", 1).isdigit():
            return _valid_rating(_half_up(float(text)), "attribute")
        for rx in RATING_TEXT_RES:
            m = rx.search(text)
            if m:
                valid = _valid_rating(_half_up(float(m.group(1))), f"text {text[:40]!r}")
                if valid:
                    return valid
    return None


def _is_empty_star(node: Tag) -> bool:
    return bool(EMPTY_STAR_RE.search(" ".join(node.get("class") or [])))


def _rating_from_stars(scope: Tag) -> Optional[int]:
    stars = [s for s in scope.select(FILLED_STAR_SELECTORS) if not _is_empty_star(s)]
    if not stars:
        return None
    return _valid_rating(len(stars), "filled stars")


def _rating_from_width(scope: Tag) -> Optional[int]:
    # a fill bar sits inside (or after) its track; the deepest, then last, width wins
    best, best_depth = None, -1
    for node in [scope, *scope.find_all(style=True)]:
        m = WIDTH_RE.search(node.get("style") or "")
        if not m:
            continue
        depth = len(list(node.parents))
        if depth >= best_depth:
            best, best_depth = m, depth
    if best is None:
        return None
    pct = float(best.group(1))
    return _valid_rating(_half_up(pct / 20), f"width {pct}%")


def extract_rating(container: Tag, selectors: Sequence[str], default: Rating) -> Rating:
    found = _select(container, selectors) if selectors else []
    scope = found[0] if found else container
    value = _rating_from_text(scope)
    if value is None:
        value = _rating_from_stars(scope)
    if value is None and found and sv.match(FILLED_STAR_SELECTORS, found[0]):
        # the selector matched the individual star icons
        filled = [f for f in found if not _is_empty_star(f)]
        value = _valid_rating(len(filled), "star icons") if filled else None
    if value is None:
        value = _rating_from_width(scope)
    return default if value is None else value


def clean_title(title: str) -> str:
    title = title.replace("\\x22", '"').replace("\\x27", "'")
    return RATED_TAIL_RE.sub("", title).strip()


def extract_title(container: Tag, selectors: Sequence[str]) -> str:
    for sel in selectors:
        for el in _select(container, [sel]):
            title = clean_title(_text(el))
            if title:
                return title
    return DEFAULT_TITLE


def extract_date(container: Tag, selectors: Sequence[str]) -> str:
    for sel in selectors:
        for el in _select(container, [sel]):
            visible = _text(el)
            attr = el.get("datetime") or el.get("data-date")
            if attr and (not visible or "ago" in visible.lower()):
                attr = attr.strip()
                return attr[:10] if re.match(r'^\d{4}-\d{2}-\d{2}', attr) else attr
            if visible:
                return visible
    return UNKNOWN_DATE


def _author_from_date(raw_date: str) -> str:
    if not raw_date.lower().startswith("submitted"):
        return ""
    m = SUBMITTED_BY_RE.search(raw_date)
    return m.group(1).strip() if m else ""


def _strip_known(text: str, title: str, raw_date: str, author: str) -> str:
    for part in (title if title != DEFAULT_TITLE else "", raw_date if raw_date != UNKNOWN_DATE else "", author):
        if part:
            text = text.replace(part, " ")
    for rx in RATING_PHRASE_RES:
        text = rx.sub(" ", text)
    text = UI_CHROME_RE.sub(" ", text)
    return _clean(text)


def extract_text(container: Tag, selectors: Sequence[str], *, title: str, raw_date: str,
                 author: str, min_length: int) -> str:
    for sel in selectors:
        for el in _select(container, [sel]):
            text = _text(el)
            if len(text) > min_length:
                return text
    return _strip_known(_text(container), title, raw_date, author)


# -----------------------------
# Containers
# -----------------------------
def _field_groups(container: Tag, strategy: SelectorStrategy) -> int:
    return sum(1 for selectors in (strategy.text, strategy.title, strategy.rating, strategy.date)
               if selectors and _select(container, selectors))


def pick_containers(matched: Iterable[Tag], strategy: SelectorStrategy) -> List[Tag]:
    """
    Broad container selectors match wrappers and fragments as well as the
    review cards. Only matches holding field elements count (when any do).
    A match holding an equally complete match, or directly holding two
    review bodies, is a wrapper and goes. A match nested inside a surviving
    one is a fragment and goes.
    """
    seen, ordered = set(), []
    for node in matched:
        if id(node) not in seen:
            seen.add(id(node))
            ordered.append(node)
    groups = {id(c): _field_groups(c, strategy) for c in ordered}
    candidates = [c for c in ordered if groups[id(c)]] or ordered
    ids = {id(c) for c in candidates}

    wrappers = set()
    text_children = {}
    for c in candidates:
        nearest = next((p for p in c.parents if id(p) in ids), None)
        if nearest is not None and strategy.text and _select(c, strategy.text):
            text_children[id(nearest)] = text_children.get(id(nearest), 0) + 1
        for parent in c.parents:
            if id(parent) in ids and groups[id(parent)] == groups[id(c)]:
                wrappers.add(id(parent))
    # a review has one body; two bodies directly inside means a list
    wrappers.update(i for i, n in text_children.items() if n > 1)
    kept = [c for c in candidates if id(c) not in wrappers]
    kept_ids = {id(c) for c in kept}
    return [c for c in kept if not any(id(p) in kept_ids for p in c.parents)]


def _extract_container(container: Tag, strategy: SelectorStrategy, default_rating: Rating,
                       min_length: int) -> Optional[RawReview]:
    rating = extract_rating(container, strategy.rating, default_rating)
    title = extract_title(container, strategy.title)
    raw_date = extract_date(container, strategy.date)
    author = _author_from_date(raw_date)
    text = extract_text(container, strategy.text, title=title, raw_date=raw_date,
                        author=author, min_length=min_length)
    if len(text) <= min_length:
        return None
    return RawReview(rating=rating, title=title, raw_date=raw_date, text=text, author=author)


def _run_strategy(soup: Tag, strategy: SelectorStrategy, default_rating: Rating,
                  min_length: int) -> List[RawReview]:
    matched = _select(soup, strategy.container)
    if not matched:
        return []
    containers = pick_containers(matched, strategy)
    logger.debug("Strategy %s: %d containers (%d raw matches)", strategy.name, len(containers), len(matched))
    out = []
    for container in containers:
        try:
            review = _extract_container(container, strategy, default_rating, min_length)
        except Exception as e:
            logger.debug("Skipping unreadable container in %s: %s", strategy.name, e)
            continue
        if review:
            out.append(review)
    return out


# -----------------------------
# Last-resort heuristic
# -----------------------------
def _has_review_sibling(el: Tag) -> bool:
    for sib in [*el.find_previous_siblings(), *el.find_next_siblings()]:
        if not isinstance(sib, Tag):
            continue
        if sv.match(HEURISTIC_HINTS, sib) or sib.select_one(HEURISTIC_HINTS):
            return True
        if DATE_HINT_RE.search(_text(sib)):
            return True
    return False


def heuristic_reviews(soup: Tag, default_rating: Rating, *, min_length: Optional[int] = None,
                      limit: Optional[int] = None) -> List[RawReview]:
    min_length = settings.HEURISTIC_MIN_TEXT_LENGTH if min_length is None else min_length
    limit = settings.HEURISTIC_LIMIT if limit is None else limit
    out: List[RawReview] = []
    seen_texts = set()
    for el in soup.find_all(HEURISTIC_TAGS):
        text = _text(el)
        if len(text) <= min_length or text in seen_texts:
            continue
        if el.find_parent(LANDMARKS):
            continue
        # innermost long block only; its wrappers repeat the same words
        if any(len(_text(child)) > min_length for child in el.find_all(HEURISTIC_TAGS)):
            continue
        if not _has_review_sibling(el):
            continue
        seen_texts.add(text)
        out.append(RawReview(rating=default_rating, title=DEFAULT_TITLE, raw_date=UNKNOWN_DATE,
                             text=text, low_confidence=True))
        if len(out) >= limit:
            break
    return out


# -----------------------------
# Entry point
# -----------------------------
def extract_reviews(
    snapshot: Union[str, Tag, None],
    strategies: Sequence[SelectorStrategy],
    *,
    heuristic: bool = True,
    default_rating: Union[str, int, None] = None,
    min_text_length: Optional[int] = None,
) -> List[RawReview]:
    """
    Reviews visible in one DOM snapshot. Strategies run in order and the first
    one that yields at least one review wins. Returns [] when nothing is found;
    only an unusable snapshot raises (ExtractionFault).
    """
    soup = _as_soup(snapshot)
    default = resolve_default_rating(default_rating)
    min_length = settings.MIN_REVIEW_TEXT_LENGTH if min_text_length is None else min_text_length

    for strategy in strategies:
        reviews = _run_strategy(soup, strategy, default, min_length)
        if reviews:
            logger.info("Extracted %d reviews with strategy %s", len(reviews), strategy.name)
            return reviews

    if heuristic:
        reviews = heuristic_reviews(soup, default)
        if reviews:
            logger.info("Heuristic pass found %d low-confidence reviews", len(reviews))
        return reviews
    return []
