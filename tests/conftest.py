"""
Global pytest fixtures for the LinkKeep test suite.

Responsibilities:
    - Provide isolated in-memory and LMDB stores (LMDB under tmp_path)
    - Provide a static scraper so no test touches the network
    - Provide a LinkManager and a FastAPI TestClient wired to those fixtures

Why an app factory?
    `create_app(store=..., scraper=...)` gives each test fresh state and
    keeps the real LMDB directory and real HTTP fetches out of the suite.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from main import create_app
from linkkeep.manager.link_manager import LinkManager
from linkkeep.models import PageMetadata
from linkkeep.scraper.base import StaticScraper
from linkkeep.storage.lmdb_storage import LMDBLinkStore
from linkkeep.storage.storage import MemoryLinkStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def minutes():
    """Helper: minutes(n) -> T0 + n minutes."""
    return lambda n: T0 + timedelta(minutes=n)


@pytest.fixture
def memory_store():
    store = MemoryLinkStore()
    yield store
    store.close()


@pytest.fixture
def lmdb_store(tmp_path):
    store = LMDBLinkStore(str(tmp_path / "db"), map_size=16 * 1024 * 1024)
    yield store
    store.close()


@pytest.fixture(params=["memory", "lmdb"])
def store(request, tmp_path):
    """Each contract test runs against both backends."""
    if request.param == "memory":
        s = MemoryLinkStore()
    else:
        s = LMDBLinkStore(str(tmp_path / "db"), map_size=16 * 1024 * 1024)
    yield s
    s.close()


@pytest.fixture
def scraper() -> StaticScraper:
    return StaticScraper(PageMetadata(title="Example Domain", description="An example page"))


@pytest.fixture
def manager(memory_store, scraper) -> LinkManager:
    return LinkManager(store=memory_store, scraper=scraper, scrape_timeout=5)


@pytest.fixture
def client(memory_store, scraper):
    app = create_app(store=memory_store, scraper=scraper)
    with TestClient(app) as c:
        yield c
