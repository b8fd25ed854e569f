from datetime import date

from utils.date_range import count_in_range, in_range, tag_all, tag_in_range

from conftest import make_review

D = date(2024, 3, 12)


def test_no_bounds_is_always_in_range():
    assert in_range(D)
    assert in_range(None)


def test_same_day_bounds_are_inclusive():
    assert in_range(D, D, D)


def test_outside_bounds():
    assert not in_range(date(2024, 3, 11), D, None)
    assert not in_range(date(2024, 3, 13), None, D)
    assert in_range(date(2024, 3, 13), D, None)


def test_undated_review_stays_in_range_with_bounds():
    assert in_range(None, D, D)


def test_tag_annotates_without_dropping():
    reviews = [
        make_review(title="old", canonical_date=date(2023, 1, 1)),
        make_review(title="new", canonical_date=date(2024, 3, 12)),
        make_review(title="undated", canonical_date=None),
    ]
    tagged = tag_all(reviews, date(2024, 1, 1), date(2024, 12, 31))
    assert [r.title for r in tagged] == ["old", "new", "undated"]
    assert [r.in_date_range for r in tagged] == [False, True, True]
    assert count_in_range(tagged) == 2


def test_tag_in_range_returns_copy():
    review = make_review(canonical_date=date(2020, 1, 1))
    tagged = tag_in_range(review, date(2024, 1, 1))
    assert tagged.in_date_range is False
    assert review.in_date_range is True
