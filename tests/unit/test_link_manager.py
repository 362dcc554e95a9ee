"""
Unit tests for LinkManager.

Covers:
    - command routing (/start, /help, /list, /mylist, /delete)
    - URL extraction and validation
    - scrape-then-save flow, including scrape failure
    - scrape happens before the store write
    - store failures become generic replies
"""

import pytest

from linkkeep.context import OpContext
from linkkeep.errors import StorageWriteError, ValidationError
from linkkeep.manager.link_manager import (
    EMPTY_TEXT,
    FAILURE_TEXT,
    HELP_TEXT,
    INVALID_URL_TEXT,
    REJECTED_DELETE_TEXT,
    REJECTED_LIST_TEXT,
    REJECTED_SAVE_TEXT,
    TIMEOUT_TEXT,
    USAGE_TEXT,
    WELCOME_TEXT,
    InvalidURLError,
    LinkManager,
)
from linkkeep.models import Link, PageMetadata
from linkkeep.scraper.base import ScrapeError, StaticScraper
from linkkeep.storage.storage import MemoryLinkStore


def test_start_and_help(manager):
    assert manager.handle_message(1, "/start") == WELCOME_TEXT
    assert manager.handle_message(1, "/help") == HELP_TEXT
    assert manager.handle_message(1, "/start@LinkKeepBot") == WELCOME_TEXT


def test_plain_text_without_url(manager):
    assert manager.handle_message(1, "hello there") == USAGE_TEXT
    assert manager.handle_message(1, "") == USAGE_TEXT


@pytest.mark.parametrize(
    "text,url",
    [
        ("https://example.com", "https://example.com"),
        ("look at this: https://example.com/a?b=1.", "https://example.com/a?b=1"),
        ("(http://example.org/x)", "http://example.org/x"),
        ("HTTPS://Example.com/Path", "HTTPS://Example.com/Path"),
        ("no link here", None),
        ("ftp://example.com", None),
    ],
)
def test_extract_url(text, url):
    assert LinkManager.extract_url(text) == url


def test_save_uses_scraped_metadata(manager, memory_store, scraper):
    reply = manager.handle_message(42, "save https://example.com please")
    assert reply == "Saved: Example Domain"
    assert scraper.calls == ["https://example.com"]
    (link,) = memory_store.get_links_by_user(42)
    assert link.title == "Example Domain"
    assert link.description == "An example page"
    assert link.timestamp is not None


def test_scrape_failure_still_saves(memory_store):
    manager = LinkManager(memory_store, StaticScraper(error=ScrapeError("timeout")))
    assert manager.handle_message(42, "https://slow.example") == "Saved: https://slow.example"
    (link,) = memory_store.get_links_by_user(42)
    assert link.title == "" and link.description == ""


def test_preview_image_saved(memory_store):
    scraper = StaticScraper(PageMetadata(title="T", image_url="https://img.example/og.png"))
    LinkManager(memory_store, scraper).handle_message(3, "https://example.com")
    assert memory_store.get_links_by_user(3)[0].preview_image_url == "https://img.example/og.png"


def test_invalid_url(manager, memory_store):
    assert manager.handle_message(1, "http:///no-host") == INVALID_URL_TEXT
    assert memory_store.get_links_by_user(1) == []


def test_list_and_delete_flow(manager, memory_store, t0, minutes):
    assert manager.handle_message(7, "/list") == EMPTY_TEXT
    memory_store.save_link(Link(url="https://a.com", user_id=7, title="A", timestamp=t0))
    memory_store.save_link(Link(url="https://b.com", user_id=7, timestamp=minutes(1)))

    assert manager.handle_message(7, "/mylist") == "1. https://b.com\n2. A\n   https://a.com"

    assert manager.handle_message(7, "/delete https://a.com") == "Deleted: https://a.com"
    assert manager.handle_message(7, "/delete https://a.com") == "Not in your list: https://a.com"
    assert manager.handle_message(7, "/delete") == "Usage: /delete <url>"
    assert manager.handle_message(7, "/list") == "1. https://b.com"


def test_scrape_runs_before_store_write(memory_store):
    events = []

    class RecordingScraper(StaticScraper):
        def scrape_metadata(self, url, ctx=None):
            events.append("scrape")
            assert memory_store._in_flight == 0  # no store operation open
            return PageMetadata(title="t")

    original_put = memory_store._put

    def recording_put(key, value, ctx):
        events.append("put")
        return original_put(key, value, ctx)

    memory_store._put = recording_put
    LinkManager(memory_store, RecordingScraper()).handle_message(1, "https://example.com")
    assert events == ["scrape", "put"]


def test_store_failure_gives_generic_reply(scraper, caplog):
    class FailingStore(MemoryLinkStore):
        def _put(self, key, value, ctx):
            raise StorageWriteError("disk full", operation="save_link", key=key)

    store = FailingStore()
    reply = LinkManager(store, scraper).handle_message(1, "https://example.com")
    assert reply == FAILURE_TEXT
    assert "disk full" not in reply
    assert any("disk full" in r.getMessage() for r in caplog.records)
    store.close()


def test_cancelled_context_gives_timeout_reply(manager):
    ctx = OpContext()
    ctx.cancel()
    assert manager.handle_message(1, "/list", ctx=ctx) == TIMEOUT_TEXT


def test_closed_store_gives_generic_reply(manager, memory_store):
    memory_store.close()
    assert manager.handle_message(1, "/list") == FAILURE_TEXT


def test_zero_user_id_rejected(manager):
    assert manager.handle_message(0, "https://example.com") == REJECTED_SAVE_TEXT


def test_invalid_url_raises_dedicated_error(manager):
    with pytest.raises(InvalidURLError):
        manager.save_url(1, "ftp://example.com/file")


def test_out_of_range_user_id_is_rejected_not_invalid_url(manager):
    too_big = 2 ** 63
    assert manager.handle_message(too_big, "https://example.com") == REJECTED_SAVE_TEXT
    with pytest.raises(ValidationError) as exc:
        manager.save_url(too_big, "https://example.com")
    assert exc.value.operation == "save_link"


def test_rejection_reply_matches_command(manager):
    assert manager.handle_message(2 ** 63, "/list") == REJECTED_LIST_TEXT
    assert manager.handle_message(0, "/delete https://example.com") == REJECTED_DELETE_TEXT
