"""
Shared fixtures: an in-memory review page that replays canned HTML, markup
builders for the retailer layouts, and a CanonicalReview factory.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Dict, List, Sequence, Union

import pytest
from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from scrapers.errors import ExtractionFault
from scrapers.models import CanonicalReview, SelectorStrategy
from scrapers.retailers import RetailerHints
from utils.dedupe import fingerprint


class FakeReviewPage:
    """
    Serves ``pages`` in order. Activating a control moves to the next page;
    past the end it keeps serving the last one.
    """

    def __init__(self, pages: Sequence[str], *, fail_snapshots: Sequence[int] = (),
                 activate_ok: bool = True):
        self.pages = list(pages)
        self.index = 0
        self.fail_snapshots = set(fail_snapshots)
        self.activate_ok = activate_ok
        self.activations = 0
        self.settle_calls: List[int] = []

    def _soup(self):
        return BeautifulSoup(self.pages[self.index], "html.parser")

    async def snapshot(self) -> str:
        if self.index in self.fail_snapshots:
            raise ExtractionFault(f"snapshot {self.index} unavailable")
        return self.pages[self.index]

    async def query(self, selectors):
        soup = self._soup()
        for sel in selectors:
            try:
                found = soup.select(sel)
            except SelectorSyntaxError:
                continue
            if found:
                return found
        return []

    async def get_text(self, handle) -> str:
        return handle.get_text(" ", strip=True)

    async def get_attribute(self, handle, name: str):
        value = handle.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def activate(self, handle) -> bool:
        if not self.activate_ok:
            return False
        self.activations += 1
        if self.index < len(self.pages) - 1:
            self.index += 1
        return True

    async def wait_settled(self, timeout_ms: int) -> None:
        self.settle_calls.append(timeout_ms)


# -----------------------------
# Markup builders
# -----------------------------
def card(title: str, text: str, rating: int = 4, when: str = "12/03/2024") -> str:
    return f"""
    <div class="review-card">
      <span class="stars" aria-label="{rating} out of 5 stars"></span>
      <h3>{title}</h3>
      <time>{when}</time>
      <p class="body">{text}</p>
    </div>"""


def tesco_card(title: str, text: str, rating: int = 4, when: str = "12/03/2024") -> str:
    return f"""
    <div data-auto="review-card">
      <div data-auto="review-rating" aria-label="{rating} out of 5 stars"></div>
      <div data-auto="review-title">{title}</div>
      <div data-auto="review-date">{when}</div>
      <div data-auto="review-text">{text}</div>
    </div>"""


def page_html(*cards: str, control: str = "") -> str:
    return f"<html><body><section id='reviews'>{''.join(cards)}</section>{control}</body></html>"


def numbered_cards(start: int, stop: int, builder=card) -> List[str]:
    return [builder(f"Review {i}", f"Body text of review number {i}") for i in range(start, stop)]


MORE_BUTTON = "<button class='more'>Show more</button>"


@pytest.fixture
def card_strategy() -> SelectorStrategy:
    return SelectorStrategy(
        name="cards",
        container=("div.review-card",),
        rating=(".stars",),
        title=("h3",),
        date=("time",),
        text=("p.body",),
    )


@pytest.fixture
def card_hints(card_strategy) -> RetailerHints:
    return RetailerHints(
        name="test",
        strategies=(card_strategy,),
        load_more_selectors=("button.more",),
        next_selectors=("a.next",),
        max_pages=10,
    )


# -----------------------------
# Run driver helpers
# -----------------------------
def fake_opener(pages_by_url: Dict[str, Union[Sequence[str], Exception]]):
    opened: List[str] = []

    @asynccontextmanager
    async def open_page(url, hints):
        opened.append(url)
        planned = pages_by_url[url]
        if isinstance(planned, Exception):
            raise planned
        yield FakeReviewPage(planned)

    open_page.opened = opened
    return open_page


class EventLog:
    def __init__(self):
        self.events = []

    def __call__(self, event, data):
        self.events.append((event, data))

    @property
    def names(self):
        return [name for name, _ in self.events]

    def of(self, name):
        return [data for n, data in self.events if n == name]


@pytest.fixture
def events() -> EventLog:
    return EventLog()


# -----------------------------
# Canonical review factory
# -----------------------------
def make_review(**overrides) -> CanonicalReview:
    fields = dict(
        rating=4,
        title="Tasty",
        raw_date="12/03/2024",
        text="Really nice with a cup of tea.",
        canonical_date=date(2024, 3, 12),
        source_url="https://www.tesco.com/groceries/en-GB/products/111",
        retailer="tesco",
        product_id="111",
        product_name="Tesco Product",
        extracted_at=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
        unique_id="",
        in_date_range=True,
    )
    fields.update(overrides)
    if not fields["unique_id"]:
        fields["unique_id"] = fingerprint(fields["title"], fields["text"])
    return CanonicalReview(**fields)
