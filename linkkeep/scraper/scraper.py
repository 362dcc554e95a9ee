"""
HTTP metadata scraper for LinkKeep.

Responsibilities:
    - Fetch a page with `requests` under a bounded timeout
    - Extract the title (<title>, then og:title)
    - Extract the description (meta description, then og:description)
    - Extract a preview image (og:image), resolved against the final URL

Notes:
    - Only the first `max_bytes` of the body are read; head metadata lives
      at the top of the document.
    - The effective timeout is min(configured timeout, context remaining);
      the context is also checked between body chunks.
    - Missing tags give empty values, not errors.
"""

import logging
from html.parser import HTMLParser
from typing import Dict, Optional
from urllib.parse import urljoin

import requests

from ..config import settings
from ..context import OpContext, ensure_context
from ..errors import CancellationError
from ..models import PageMetadata
from .base import BaseScraper, ScrapeError

log = logging.getLogger("linkkeep.scraper")

USER_AGENT = "Mozilla/5.0 (compatible; LinkKeepBot/1.0)"


class _HeadParser(HTMLParser):
    """Collects <title> text and <meta> name/property -> content pairs."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.title_parts = []
        self.meta: Dict[str, str] = {}
        self._in_title = False
        self._title_done = False

    def handle_starttag(self, tag, attrs):
        if tag == "title" and not self._title_done:
            self._in_title = True
        elif tag == "meta":
            attrs = dict(attrs)
            name = (attrs.get("name") or attrs.get("property") or "").strip().lower()
            content = attrs.get("content")
            if name and content is not None and name not in self.meta:
                self.meta[name] = content.strip()

    def handle_endtag(self, tag):
        if tag == "title" and self._in_title:
            self._in_title = False
            self._title_done = True

    def handle_data(self, data):
        if self._in_title:
            self.title_parts.append(data)

    @property
    def title(self) -> str:
        return " ".join("".join(self.title_parts).split())


def parse_metadata(html: str, base_url: str = "") -> PageMetadata:
    """Pull title, description and og:image out of an HTML document."""
    parser = _HeadParser()
    parser.feed(html)
    parser.close()
    meta = parser.meta
    title = parser.title or meta.get("og:title", "")
    description = meta.get("description") or meta.get("og:description", "")
    image = meta.get("og:image") or meta.get("twitter:image") or None
    if image and base_url:
        image = urljoin(base_url, image)
    return PageMetadata(title=title, description=description, image_url=image)


class RequestsScraper(BaseScraper):
    def __init__(self, timeout: Optional[float] = None, max_bytes: int = 512 * 1024,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout if timeout is not None else settings.SCRAPE_TIMEOUT
        self.max_bytes = max_bytes
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def scrape_metadata(self, url: str, ctx: Optional[OpContext] = None) -> PageMetadata:
        ctx = ensure_context(ctx)
        try:
            ctx.check("scrape")
        except CancellationError as err:
            raise ScrapeError(f"scrape cancelled for {url}") from err
        timeout = self.timeout
        remaining = ctx.remaining()
        if remaining is not None:
            if remaining <= 0:
                raise ScrapeError(f"scrape deadline exceeded for {url}")
            timeout = min(timeout, remaining)
        log.info("scraping metadata url=%s timeout=%.1fs", url, timeout)
        try:
            with self.session.get(url, timeout=timeout, stream=True, allow_redirects=True) as resp:
                resp.raise_for_status()
                body = b""
                for chunk in resp.iter_content(chunk_size=16 * 1024):
                    ctx.check("scrape")
                    body += chunk
                    if len(body) >= self.max_bytes:
                        break
                encoding = resp.encoding or "utf-8"
                final_url = resp.url
        except CancellationError as err:
            log.warning("scrape abandoned url=%s: %s", url, err)
            raise ScrapeError(f"scrape cancelled for {url}") from err
        except requests.Timeout as err:
            log.warning("scrape timed out url=%s", url)
            raise ScrapeError(f"scraping timed out for {url}") from err
        except requests.RequestException as err:
            log.warning("scrape failed url=%s: %s", url, err)
            raise ScrapeError(f"failed to fetch {url}: {err}") from err
        try:
            html = body.decode(encoding, errors="replace")
        except LookupError:
            html = body.decode("utf-8", errors="replace")
        metadata = parse_metadata(html, base_url=final_url)
        if not metadata.description:
            log.debug("no description meta tag url=%s", url)
        return metadata

    def close(self) -> None:
        self.session.close()
