#!/usr/bin/env python3
"""
Headless review scrape: product URLs in, one CSV out.

Usage:
    python cli.py urls.txt
    python cli.py urls.txt --date-from 2024-01-01 --date-to 2024-06-30 -o out.csv
    python cli.py urls.txt --max-reviews 100 --locale us --headed --no-robots
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from scrapers.errors import RunFault
from scrapers.retailers import parse_url_list
from scrapers.reviews import scrape_many
from utils import settings
from utils.dates import LOCALES, parse_iso_bound

logger = logging.getLogger("cli")


def setup_logging(level: str, log_file: Optional[Path] = None) -> Path:
    if log_file is None:
        settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        log_file = settings.LOGS_DIR / f"scrape-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    logging.basicConfig(
        level=level.upper(),
        format=settings.LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_file, encoding="utf-8")],
    )
    return log_file


def _iso_date(value: str):
    try:
        return parse_iso_bound(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape supermarket product reviews to CSV")
    parser.add_argument("urls_file", type=Path, help="Text file with one product URL per line ('-' for stdin)")
    parser.add_argument("--date-from", type=_iso_date, default=None, help="Start of the date range (YYYY-MM-DD)")
    parser.add_argument("--date-to", type=_iso_date, default=None, help="End of the date range (YYYY-MM-DD)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="CSV path (default: reviews_multiple_products_<date>.csv)")
    parser.add_argument("--max-reviews", type=int, default=settings.DEFAULT_MAX_REVIEWS,
                        help=f"Max reviews per product (default: {settings.DEFAULT_MAX_REVIEWS})")
    parser.add_argument("--locale", choices=LOCALES, default=None,
                        help="Order for ambiguous numeric dates (default: per retailer)")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--no-robots", action="store_true", help="Do not consult robots.txt")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default: %(default)s)")
    return parser


def read_urls(path: Path) -> List[str]:
    text = sys.stdin.read() if str(path) == "-" else path.read_text(encoding="utf-8")
    return parse_url_list(text)


def print_event(event: str, data: Dict):
    if event == "progress":
        print(f"[{data['current']}/{data['total']}] {data['url']}")
    elif event == "url_error":
        print(f"  ! {data['url']}: {data['message']}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    log_file = setup_logging(args.log_level)

    if args.date_from and args.date_to and args.date_from > args.date_to:
        logger.error("--date-from must be on or before --date-to")
        return 2
    try:
        urls = read_urls(args.urls_file)
    except OSError as e:
        logger.error("Could not read %s: %s", args.urls_file, e)
        return 2
    if not urls:
        logger.error("No URLs found in %s", args.urls_file)
        return 2

    try:
        result = asyncio.run(scrape_many(
            urls,
            date_from=args.date_from,
            date_to=args.date_to,
            max_reviews=args.max_reviews,
            locale=args.locale,
            respect_robots=not args.no_robots,
            emit=print_event,
            headed=args.headed,
        ))
    except RunFault as e:
        logger.error("Run failed: %s", e)
        return 1

    out = args.output or Path(result.filename)
    out.write_text(result.csv_content, encoding="utf-8", newline="")
    print(f"\nSaved {len(result.reviews)} reviews from {result.successful_products} of "
          f"{result.total_products} product(s) to {out}")
    print(f"Log: {log_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
