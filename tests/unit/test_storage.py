"""
Unit tests for MemoryLinkStore.

Covers:
    - obsolete-version accounting behind reclaim()
    - snapshot isolation of scans against later writes
    - close() waits for in-flight operations

Contract behavior shared with LMDB lives in tests/integration/test_store_contract.py.
"""

import threading

import pytest

from linkkeep.context import OpContext
from linkkeep.models import Link
from linkkeep.storage.storage import MemoryLinkStore


@pytest.fixture
def storage():
    """Fresh storage instance per test."""
    s = MemoryLinkStore()
    yield s
    s.close()


def test_reclaim_counts_replaced_and_deleted_versions(storage, t0):
    assert storage.reclaim() == 0
    storage.save_link(Link(url="https://a.com", user_id=1, timestamp=t0))
    assert storage.reclaim() == 0  # first insert leaves nothing behind
    storage.save_link(Link(url="https://a.com", user_id=1, title="v2", timestamp=t0))
    storage.delete_link(1, "https://a.com")
    storage.delete_link(1, "https://a.com")  # no-op delete
    assert storage.reclaim() == 2
    assert storage.reclaim() == 0


def test_len_tracks_records(storage, t0):
    storage.save_link(Link(url="https://a.com", user_id=1, timestamp=t0))
    storage.save_link(Link(url="https://a.com", user_id=2, timestamp=t0))
    storage.save_link(Link(url="https://a.com", user_id=2, timestamp=t0))
    assert len(storage) == 2


def test_scan_is_a_snapshot(storage, t0):
    storage.save_link(Link(url="https://a.com", user_id=1, timestamp=t0))
    snapshot = storage._scan(b"user:", OpContext.background())
    storage.save_link(Link(url="https://b.com", user_id=1, timestamp=t0))
    assert len(snapshot) == 1


def test_close_waits_for_in_flight_operation(storage):
    entered = threading.Event()
    release = threading.Event()
    closed = threading.Event()

    def slow_operation():
        with storage._operation("slow", OpContext.background()):
            entered.set()
            release.wait(5)

    worker = threading.Thread(target=slow_operation)
    worker.start()
    entered.wait(5)

    closer = threading.Thread(target=lambda: (storage.close(), closed.set()))
    closer.start()
    assert not closed.wait(0.2)  # blocked on the in-flight operation

    release.set()
    worker.join(5)
    closer.join(5)
    assert closed.is_set()
    assert storage.closed
