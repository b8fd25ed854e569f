# utils/csv_export.py
#
# Canonical reviews -> the per-run CSV document (metadata comments, header,
# per-product groups) and a pandas view of the same rows for the UI.

import csv
import io
from datetime import date
from typing import Iterable, List, Optional

import pandas as pd

from scrapers.models import CanonicalReview, is_known_rating
from utils.date_range import count_in_range
from utils.dates import format_uk

CSV_COLUMNS = ["Product Name", "Rating", "Date", "In Date Range", "Title", "Text", "Extracted On"]
CRLF = "\r\n"
FILTER_NOTE = ("# Note: All reviews are included, but only those within the date range "
               "are marked 'Yes' in the 'In Date Range' column.")
SEPARATOR_ROW = "," * (len(CSV_COLUMNS) - 1)

FRAME_COLUMNS = [
    "retailer", "product_id", "product_name", "rating", "title", "text", "raw_date",
    "review_date", "in_date_range", "author", "low_confidence", "source_url", "extracted_at",
]


def csv_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"reviews_multiple_products_{today.isoformat()}.csv"


def _rating_cell(review: CanonicalReview) -> str:
    return str(review.rating) if is_known_rating(review.rating) else ""


def _product_header(review: CanonicalReview) -> str:
    label = f"Product: {review.product_name} (ID: {review.product_id})"
    return '"' + label.replace('"', '""') + '"' + SEPARATOR_ROW


def sort_reviews(reviews: Iterable[CanonicalReview], *, newest_first: bool = False) -> List[CanonicalReview]:
    """Group by product id; optionally newest first inside a product, undated last."""
    if not newest_first:
        return sorted(reviews, key=lambda r: r.product_id)

    def key(r: CanonicalReview):
        if r.canonical_date is None:
            return (r.product_id, 1, 0)
        return (r.product_id, 0, -r.canonical_date.toordinal())

    return sorted(reviews, key=key)


def assemble_csv(
    reviews: List[CanonicalReview],
    *,
    total_products: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    extraction_date: Optional[date] = None,
) -> str:
    extraction_date = extraction_date or date.today()
    filtered = date_from is not None or date_to is not None

    lines = [
        f"# Products Scraped: {total_products}",
        f"# Extraction Date: {format_uk(extraction_date)}",
        f"# Total Reviews: {len(reviews)}",
    ]
    if filtered:
        lines.append(f"# Date Filter: {format_uk(date_from) or 'any'} to {format_uk(date_to) or 'any'}")
        lines.append(f"# Reviews in date range: {count_in_range(reviews)} of {len(reviews)}")
        lines.append(FILTER_NOTE)
    lines.append("")

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator=CRLF, quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_COLUMNS)
    head = CRLF.join(lines) + CRLF + buf.getvalue()

    body = io.StringIO()
    writer = csv.writer(body, lineterminator=CRLF, quoting=csv.QUOTE_MINIMAL)
    current = None
    for r in sort_reviews(reviews, newest_first=filtered):
        if r.product_id != current:
            if current is not None:
                body.write(SEPARATOR_ROW + CRLF)
            body.write(_product_header(r) + CRLF)
            current = r.product_id
        writer.writerow([
            r.product_name,
            _rating_cell(r),
            format_uk(r.canonical_date),
            "Yes" if r.in_date_range else "No",
            r.title,
            r.text,
            format_uk(r.extracted_at),
        ])
    return head + body.getvalue()


def reviews_to_frame(reviews: Iterable[CanonicalReview]) -> pd.DataFrame:
    rows = []
    for r in reviews:
        rows.append({
            "retailer": r.retailer,
            "product_id": r.product_id,
            "product_name": r.product_name,
            "rating": r.rating if is_known_rating(r.rating) else pd.NA,
            "title": r.title,
            "text": r.text,
            "raw_date": r.raw_date,
            "review_date": pd.Timestamp(r.canonical_date) if r.canonical_date else pd.NaT,
            "in_date_range": r.in_date_range,
            "author": r.author,
            "low_confidence": r.low_confidence,
            "source_url": r.source_url,
            "extracted_at": r.extracted_at,
        })
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if not df.empty:
        df["rating"] = df["rating"].astype("Int64")
        df["review_date"] = pd.to_datetime(df["review_date"], errors="coerce")
    return df
