"""
LinkManager module for LinkKeep.

Responsibilities:
    - Interpret one inbound chat message per call (commands or a URL)
    - Validate URLs before anything is fetched or stored
    - Scrape page metadata strictly before the store's write transaction
    - Save, list and delete links through an injected link store
    - Turn every outcome into reply text for the chat transport

Design notes:
    - The manager never holds a store transaction across the scrape; the
      scrape runs first under its own deadline, then one save is issued.
    - A failed scrape still saves the link, with empty metadata.
    - Store failures are logged with full context, but the user only ever
      sees a generic failure notice.
    - Store and scraper are injected dependencies, so tests can use the
      in-memory store and a static scraper.

LLM Prompt Example:
    "Explain how to keep slow network I/O out of storage transactions in a
    chat bot that saves links, and how to report failures without leaking
    internals to end users."
"""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError as PydanticValidationError

from ..config import settings
from ..context import OpContext, ensure_context
from ..errors import CancellationError, LinkStoreError, ValidationError
from ..models import Link, PageMetadata
from ..scraper.base import BaseScraper, ScrapeError
from ..storage.base import BaseLinkStore

log = logging.getLogger("linkkeep.manager")

URLPattern = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)

WELCOME_TEXT = "Welcome to LinkKeep! Send me a website link, and I'll save its metadata for you."
HELP_TEXT = (
    "Send me a link to save it.\n"
    "/list - show your saved links\n"
    "/delete <url> - remove a saved link\n"
    "/help - show this message"
)
USAGE_TEXT = "Send me a URL to save, or use /list to see your links."
INVALID_URL_TEXT = "That doesn't look like a valid http(s) link."
EMPTY_TEXT = "You have no saved links yet."
FAILURE_TEXT = "Sorry, something went wrong. Please try again later."
TIMEOUT_TEXT = "Sorry, that took too long. Please try again."
REJECTED_SAVE_TEXT = "That link can't be saved."
REJECTED_LIST_TEXT = "Your links can't be listed for this account."
REJECTED_DELETE_TEXT = "That link can't be deleted."


class InvalidURLError(ValueError):
    """Raised when a message carries something that is not an http(s) URL."""


class LinkManager:
    """
    Coordinates the chat commands and the link store.

    LLM Prompt Example:
        "Show how dependency injection of the store and scraper keeps a chat
        handler testable without a browser or a database."
    """

    def __init__(
        self,
        store: BaseLinkStore,
        scraper: Optional[BaseScraper] = None,
        scrape_timeout: Optional[float] = None,
    ):
        """
        Args:
            store (BaseLinkStore): Backend link store.
            scraper (Optional[BaseScraper]): Metadata source; None skips scraping.
            scrape_timeout (Optional[float]): Seconds per scrape (default from settings).
        """
        self.store = store
        self.scraper = scraper
        self.scrape_timeout = scrape_timeout if scrape_timeout is not None else settings.SCRAPE_TIMEOUT

    # ---------------------------------------------------------------------
    # Validation helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _validate_url(url: str) -> None:
        """
        Validate that a URL has an http/https scheme and a netloc.

        Raises:
            InvalidURLError: If the URL is malformed.
        """
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise InvalidURLError("Invalid URL format")

    @staticmethod
    def extract_url(text: str) -> Optional[str]:
        """Return the first http(s) URL in `text`, trailing punctuation stripped."""
        match = URLPattern.search(text or "")
        if not match:
            return None
        return match.group(0).rstrip(".,;:!?)]}")

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def handle_message(self, user_id: int, text: str, ctx: Optional[OpContext] = None) -> str:
        """
        Handle one inbound message and return the reply text.

        Never raises for store or scrape failures; those become generic replies.
        """
        ctx = ensure_context(ctx)
        text = (text or "").strip()
        command, _, argument = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        log.info("message user_id=%s command=%s", user_id, command if command.startswith("/") else "<text>")

        try:
            if command == "/start":
                return WELCOME_TEXT
            if command == "/help":
                return HELP_TEXT
            if command in ("/list", "/mylist"):
                return self.format_links(self.list_links(user_id, ctx))
            if command == "/delete":
                return self._delete_reply(user_id, argument.strip(), ctx)
            url = self.extract_url(text)
            if url is None:
                return USAGE_TEXT
            link = self.save_url(user_id, url, ctx)
            label = link.title or link.url
            return f"Saved: {label}"
        except InvalidURLError:
            return INVALID_URL_TEXT
        except ValidationError as err:
            log.warning("rejected message user_id=%s: %s", user_id, err)
            if command in ("/list", "/mylist"):
                return REJECTED_LIST_TEXT
            if command == "/delete":
                return REJECTED_DELETE_TEXT
            return REJECTED_SAVE_TEXT
        except CancellationError as err:
            log.warning("message timed out user_id=%s: %s", user_id, err)
            return TIMEOUT_TEXT
        except LinkStoreError as err:
            log.error("store failure user_id=%s: %s", user_id, err)
            return FAILURE_TEXT

    def save_url(self, user_id: int, url: str, ctx: Optional[OpContext] = None) -> Link:
        """
        Scrape `url` and save it for `user_id`.

        Raises:
            InvalidURLError: On an invalid URL.
            ValidationError: If the record cannot be built (e.g. user_id out of range).
            LinkStoreError: On store failures.
        """
        ctx = ensure_context(ctx)
        self._validate_url(url)
        metadata = self._scrape(url, ctx)
        try:
            link = Link(
                url=url,
                user_id=user_id,
                title=metadata.title,
                description=metadata.description,
                preview_image_url=metadata.image_url,
            )
        except PydanticValidationError as err:
            raise ValidationError("invalid link record", operation="save_link", user_id=user_id) from err
        return self.store.save_link(link, ctx=ctx)

    def list_links(self, user_id: int, ctx: Optional[OpContext] = None) -> List[Link]:
        return self.store.get_links_by_user(user_id, ctx=ensure_context(ctx))

    def delete_url(self, user_id: int, url: str, ctx: Optional[OpContext] = None) -> bool:
        return self.store.delete_link(user_id, url, ctx=ensure_context(ctx))

    @staticmethod
    def format_links(links: List[Link]) -> str:
        if not links:
            return EMPTY_TEXT
        lines = []
        for i, link in enumerate(links, start=1):
            if link.title:
                lines.append(f"{i}. {link.title}\n   {link.url}")
            else:
                lines.append(f"{i}. {link.url}")
        return "\n".join(lines)

    # ---------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------
    def _delete_reply(self, user_id: int, url: str, ctx: OpContext) -> str:
        if not url:
            return "Usage: /delete <url>"
        if self.delete_url(user_id, url, ctx):
            return f"Deleted: {url}"
        return f"Not in your list: {url}"

    def _scrape(self, url: str, ctx: OpContext) -> PageMetadata:
        if self.scraper is None:
            return PageMetadata()
        try:
            return self.scraper.scrape_metadata(url, ctx=ctx.child(timeout=self.scrape_timeout))
        except ScrapeError as err:
            log.warning("saving without metadata url=%s: %s", url, err)
            return PageMetadata()
