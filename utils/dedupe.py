# utils/dedupe.py

import re
from typing import Iterable, List, Optional, Set, TypeVar

WS_RE = re.compile(r'\s+')
PUNCT_RE = re.compile(r'[^\w\s]+')

T = TypeVar("T")


def _key_part(s: str) -> str:
    return WS_RE.sub("-", PUNCT_RE.sub("", s).strip())


def fingerprint(title: Optional[str], text: Optional[str]) -> str:
    """
    Content key for a review: first 30 chars of title + first 50 of text,
    lower-cased with punctuation dropped. Whitespace runs become "-".
    """
    title_part = _key_part((title or "")[:30])
    text_part = _key_part((text or "")[:50])
    return f"{title_part}-{text_part}".lower()


def review_fingerprint(review) -> str:
    return fingerprint(getattr(review, "title", ""), getattr(review, "text", ""))


class ReviewDeduper:
    """
    Run-scoped "seen" set. DOM nodes are not stable across navigations, so
    reviews are recognised by content; the first copy seen wins.
    """

    def __init__(self, seen: Optional[Set[str]] = None):
        self.seen: Set[str] = set(seen or ())

    def __len__(self) -> int:
        return len(self.seen)

    def __contains__(self, review) -> bool:
        return review_fingerprint(review) in self.seen

    def add(self, review) -> bool:
        key = review_fingerprint(review)
        if key in self.seen:
            return False
        self.seen.add(key)
        return True

    def filter_new(self, reviews: Iterable[T]) -> List[T]:
        return [r for r in reviews if self.add(r)]


def dedupe(reviews: Iterable[T]) -> List[T]:
    return ReviewDeduper().filter_new(reviews)
