"""
Abstract Base Class for metadata scrapers.

A scraper turns a URL into `PageMetadata`. Missing title/description are
not errors (empty strings come back); only a fetch that cannot complete
(network failure, timeout, HTTP error status, cancelled context) raises
`ScrapeError`.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..context import OpContext
from ..models import PageMetadata

__all__ = ["BaseScraper", "ScrapeError", "StaticScraper"]


class ScrapeError(Exception):
    """The page could not be fetched."""


class BaseScraper(ABC):
    """Abstract base for pluggable metadata scrapers."""

    @abstractmethod
    def scrape_metadata(self, url: str, ctx: Optional[OpContext] = None) -> PageMetadata:  # pragma: no cover
        """
        Fetch title, description and preview image for `url`.

        Args:
            url (str): Absolute http(s) URL.
            ctx (OpContext): Bounds the fetch; its deadline caps the timeout.

        Raises:
            ScrapeError: If the fetch itself fails.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release held resources (sessions, browsers)."""


class StaticScraper(BaseScraper):
    """Returns the same metadata for every URL, or raises the configured error."""

    def __init__(self, metadata: Optional[PageMetadata] = None, error: Optional[Exception] = None):
        self.metadata = metadata or PageMetadata()
        self.error = error
        self.calls = []

    def scrape_metadata(self, url: str, ctx: Optional[OpContext] = None) -> PageMetadata:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.metadata
