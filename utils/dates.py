# utils/dates.py
#
# Free-form review dates -> datetime.date. Never raises on bad input; an
# unparseable string gives None and the caller decides the fallback.

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from scrapers.models import UNKNOWN_DATE

LOCALE_UK = "uk"
LOCALE_US = "us"
LOCALES = (LOCALE_UK, LOCALE_US)

SENTINELS = {"", UNKNOWN_DATE.lower(), "unknown", "n/a"}

SUBMITTED_RE = re.compile(r'Submitted\s+(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b', re.IGNORECASE)
ISO_RE       = re.compile(r'^(\d{4})-(\d{1,2})-(\d{1,2})')
NUMERIC_RE   = re.compile(r'\b(\d{1,2})([/-])(\d{1,2})\2(\d{4}|\d{2})\b')
DAY_MONTH_RE = re.compile(r'\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?([A-Za-z]{3,9})\.?,?\s+(\d{4})\b', re.IGNORECASE)
MONTH_DAY_RE = re.compile(r'\b([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})\b', re.IGNORECASE)
RELATIVE_RE  = re.compile(r'\b(\d+|an?|one)\s+(day|week|month|year)s?\s+ago\b', re.IGNORECASE)
YEAR_RE      = re.compile(r'\b(20\d{2})\b')

# month names (full, abbreviated, "Sept") as dateutil knows them
_PARSER_INFO = dateparser.parserinfo()


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(raw: str) -> int:
    y = int(raw)
    if len(raw) == 2:
        return 2000 + y if y < 50 else 1900 + y
    return y


def _numeric(first: str, second: str, year: str, locale: str) -> Optional[date]:
    a, b, y = int(first), int(second), _expand_year(year)
    if a > 12:
        day, month = a, b
    elif b > 12:
        month, day = a, b
    elif locale == LOCALE_US:
        month, day = a, b
    else:
        day, month = a, b
    return _safe_date(y, month, day)


def _textual(raw: str) -> Optional[date]:
    for rx, month_group, dayfirst in ((DAY_MONTH_RE, 2, True), (MONTH_DAY_RE, 1, False)):
        for m in rx.finditer(raw):
            if _PARSER_INFO.month(m.group(month_group)) is None:
                continue
            try:
                return dateparser.parse(m.group(0), dayfirst=dayfirst).date()
            except (ValueError, OverflowError):
                continue
    return None


def _relative(raw: str, today: date) -> Optional[date]:
    lowered = raw.lower()
    if re.search(r'\btoday\b', lowered):
        return today
    if re.search(r'\byesterday\b', lowered):
        return today - timedelta(days=1)
    m = RELATIVE_RE.search(raw)
    if not m:
        return None
    qty = m.group(1).lower()
    n = 1 if qty in ("a", "an", "one") else int(qty)
    unit = m.group(2).lower()
    return today - relativedelta(**{f"{unit}s": n})


def normalize_date(raw: Optional[str], *, locale: str = LOCALE_UK,
                   today: Optional[date] = None) -> Optional[date]:
    """
    Parse a review date string into a calendar date.

    Attempts, first real date wins: "Submitted DD/MM/YYYY, by ..." ->
    ISO -> numeric D/M/Y (ambiguous order resolved by ``locale``) ->
    month name in either order -> "N units ago" -> bare 20xx year (1 January).
    """
    if raw is None:
        return None
    text = " ".join(str(raw).split())
    if text.lower() in SENTINELS:
        return None
    today = today or date.today()

    m = SUBMITTED_RE.search(text)
    if m:
        d = _safe_date(_expand_year(m.group(3)), int(m.group(2)), int(m.group(1)))
        if d:
            return d

    m = ISO_RE.match(text)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if d:
            return d

    m = NUMERIC_RE.search(text)
    if m:
        d = _numeric(m.group(1), m.group(3), m.group(4), locale)
        if d:
            return d

    d = _textual(text)
    if d:
        return d

    d = _relative(text, today)
    if d:
        return d

    m = YEAR_RE.search(text)
    if m:
        return date(int(m.group(1)), 1, 1)

    return None


def format_uk(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def parse_iso_bound(value: Optional[Union[str, date]]) -> Optional[date]:
    """YYYY-MM-DD (or an existing date) -> date; blank -> None; malformed -> ValueError."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = value.strip()
    if not s:
        return None
    return datetime.strptime(s, "%Y-%m-%d").date()
