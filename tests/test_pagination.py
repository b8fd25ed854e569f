from dataclasses import replace

import pytest

from scrapers.pagination import (
    STOP_ACTIVATION_FAILED, STOP_DISABLED, STOP_MAX_PAGES, STOP_MAX_REVIEWS,
    STOP_NO_CONTROL, STOP_STALLED, collect_reviews,
)

from conftest import MORE_BUTTON, FakeReviewPage, numbered_cards, page_html


@pytest.mark.asyncio
async def test_repeated_counts_stop_after_second_stall(card_hints):
    same = page_html(*numbered_cards(0, 10), control=MORE_BUTTON)
    page = FakeReviewPage([same, same, same])

    outcome = await collect_reviews(page, card_hints, max_reviews=50, stall_limit=2)

    assert len(outcome.reviews) == 10
    assert outcome.stop_reason == STOP_STALLED
    assert outcome.pages == 3
    assert page.activations == 2


@pytest.mark.asyncio
async def test_load_more_accumulates_without_duplicates(card_hints):
    pages = [
        page_html(*numbered_cards(0, 5), control=MORE_BUTTON),
        page_html(*numbered_cards(0, 10), control=MORE_BUTTON),
        page_html(*numbered_cards(0, 12)),
    ]
    outcome = await collect_reviews(FakeReviewPage(pages), card_hints, max_reviews=50)

    assert [r.title for r in outcome.reviews] == [f"Review {i}" for i in range(12)]
    assert outcome.stop_reason == STOP_NO_CONTROL


@pytest.mark.asyncio
async def test_next_page_replacing_content(card_hints):
    nxt = "<a class='next' href='#'>Next</a>"
    pages = [
        page_html(*numbered_cards(0, 5), control=nxt),
        page_html(*numbered_cards(5, 10), control=nxt),
        page_html(*numbered_cards(10, 12)),
    ]
    page = FakeReviewPage(pages)
    outcome = await collect_reviews(page, card_hints, max_reviews=50, settle_timeout_ms=123)

    assert len(outcome.reviews) == 12
    assert outcome.pages == 3
    assert page.settle_calls == [123, 123]


@pytest.mark.parametrize("control", [
    "<button class='more' disabled>Show more</button>",
    "<button class='more' aria-disabled='true'>Show more</button>",
    "<button class='more is-disabled'>Show more</button>",
])
@pytest.mark.asyncio
async def test_disabled_control_stops(card_hints, control):
    page = FakeReviewPage([page_html(*numbered_cards(0, 3), control=control)])
    outcome = await collect_reviews(page, card_hints)

    assert outcome.stop_reason == STOP_DISABLED
    assert page.activations == 0
    assert len(outcome.reviews) == 3


@pytest.mark.asyncio
async def test_max_pages_ceiling(card_hints):
    pages = [page_html(*numbered_cards(i * 3, i * 3 + 3), control=MORE_BUTTON) for i in range(6)]
    hints = replace(card_hints, max_pages=2)
    outcome = await collect_reviews(FakeReviewPage(pages), hints, max_reviews=100)

    assert outcome.stop_reason == STOP_MAX_PAGES
    assert outcome.pages == 2
    assert len(outcome.reviews) == 6


@pytest.mark.asyncio
async def test_max_reviews_truncates(card_hints):
    page = FakeReviewPage([page_html(*numbered_cards(0, 10), control=MORE_BUTTON)])
    outcome = await collect_reviews(page, card_hints, max_reviews=7)

    assert outcome.stop_reason == STOP_MAX_REVIEWS
    assert len(outcome.reviews) == 7
    assert page.activations == 0


@pytest.mark.asyncio
async def test_failed_activation_stops(card_hints):
    page = FakeReviewPage([page_html(*numbered_cards(0, 4), control=MORE_BUTTON)], activate_ok=False)
    outcome = await collect_reviews(page, card_hints)

    assert outcome.stop_reason == STOP_ACTIVATION_FAILED
    assert len(outcome.reviews) == 4


@pytest.mark.asyncio
async def test_snapshot_failure_counts_as_empty_page(card_hints):
    pages = [
        page_html(*numbered_cards(0, 5), control=MORE_BUTTON),
        page_html(*numbered_cards(5, 10), control=MORE_BUTTON),
        page_html(*numbered_cards(10, 15)),
    ]
    page = FakeReviewPage(pages, fail_snapshots=[1])
    outcome = await collect_reviews(page, card_hints, stall_limit=2)

    assert [r.title for r in outcome.reviews] == [f"Review {i}" for i in [*range(5), *range(10, 15)]]
    assert outcome.stop_reason == STOP_NO_CONTROL


@pytest.mark.asyncio
async def test_no_reviews_and_no_control(card_hints):
    outcome = await collect_reviews(FakeReviewPage(["<html><body></body></html>"]), card_hints)
    assert outcome.reviews == []
    assert outcome.stop_reason == STOP_NO_CONTROL
    assert outcome.pages == 1
