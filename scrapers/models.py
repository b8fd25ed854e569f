# scrapers/models.py

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple, Union

RATING_UNKNOWN = "unknown"
UNKNOWN_DATE = "Unknown date"
DEFAULT_TITLE = "Product Review"

Rating = Union[int, str]


def is_known_rating(rating: Rating) -> bool:
    return isinstance(rating, int) and 1 <= rating <= 5


@dataclass(frozen=True)
class SelectorStrategy:
    """
    One ranked set of selectors for a review container and its four fields.
    Every field is a tuple of CSS selectors tried in order (A, else B, else C).
    """
    name: str
    container: Tuple[str, ...]
    rating: Tuple[str, ...] = ()
    title: Tuple[str, ...] = ()
    date: Tuple[str, ...] = ()
    text: Tuple[str, ...] = ()


@dataclass
class RawReview:
    rating: Rating
    title: str
    raw_date: str
    text: str
    author: str = ""
    low_confidence: bool = False


@dataclass
class CanonicalReview:
    rating: Rating
    title: str
    raw_date: str
    text: str
    canonical_date: Optional[date]
    source_url: str
    retailer: str
    product_id: str
    product_name: str
    extracted_at: datetime
    unique_id: str
    in_date_range: bool = True
    author: str = ""
    low_confidence: bool = False


@dataclass
class ScrapeResult:
    reviews: List[CanonicalReview] = field(default_factory=list)
    csv_content: Optional[str] = None
    filename: Optional[str] = None
    total_products: int = 0
    successful_products: int = 0
    status_rows: List[Dict] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.csv_content is not None
