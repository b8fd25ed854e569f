# scrapers/errors.py
#
# "Not found" and "date unparseable" are ordinary outcomes (empty lists, None)
# and have no exception type here.


class ReviewScrapeError(Exception):
    """Base class for review scraping failures."""


class ExtractionFault(ReviewScrapeError):
    """The DOM snapshot or a query against it could not be read."""


class PageFault(ReviewScrapeError):
    """A whole product URL failed (navigation, timeout, robots block)."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url
        self.message = message


class RunFault(ReviewScrapeError):
    """The run produced nothing usable; no CSV is built."""
