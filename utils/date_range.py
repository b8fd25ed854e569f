# utils/date_range.py
#
# Annotates reviews with in_date_range; never drops one.

from dataclasses import replace
from datetime import date, datetime, time
from typing import Iterable, List, Optional

from scrapers.models import CanonicalReview

END_OF_DAY = time(23, 59, 59, 999000)


def in_range(value: Optional[date], date_from: Optional[date] = None,
             date_to: Optional[date] = None) -> bool:
    if date_from is None and date_to is None:
        return True
    # unparseable dates stay in range so real reviews are not hidden
    if value is None:
        return True
    moment = datetime.combine(value, time.min)
    if date_from is not None and moment < datetime.combine(date_from, time.min):
        return False
    if date_to is not None and moment > datetime.combine(date_to, END_OF_DAY):
        return False
    return True


def tag_in_range(review: CanonicalReview, date_from: Optional[date] = None,
                 date_to: Optional[date] = None) -> CanonicalReview:
    return replace(review, in_date_range=in_range(review.canonical_date, date_from, date_to))


def tag_all(reviews: Iterable[CanonicalReview], date_from: Optional[date] = None,
            date_to: Optional[date] = None) -> List[CanonicalReview]:
    return [tag_in_range(r, date_from, date_to) for r in reviews]


def count_in_range(reviews: Iterable[CanonicalReview]) -> int:
    return sum(1 for r in reviews if r.in_date_range)
