import importlib

import pytest

from linkkeep.storage.lmdb_storage import LMDBLinkStore
from linkkeep.storage.storage import MemoryLinkStore


def reload_factory():
    import linkkeep.storage.storage_factory as factory
    importlib.reload(factory)
    return factory


def test_get_storage_memory(monkeypatch):
    monkeypatch.setenv("LINKKEEP_STORAGE_BACKEND", "memory")
    factory = reload_factory()
    storage = factory.get_storage(reclaim_interval=0)
    assert isinstance(storage, MemoryLinkStore)
    storage.close()


def test_get_storage_lmdb_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LINKKEEP_STORAGE_BACKEND", "lmdb")
    monkeypatch.setenv("LINKKEEP_DB_PATH", str(tmp_path / "envdb"))
    factory = reload_factory()
    storage = factory.get_storage(map_size=16 * 1024 * 1024, reclaim_interval=0)
    try:
        assert isinstance(storage, LMDBLinkStore)
        assert storage.path == str(tmp_path / "envdb")
        assert (tmp_path / "envdb").is_dir()
    finally:
        storage.close()


def test_get_storage_explicit_backend_and_path(monkeypatch, tmp_path):
    monkeypatch.setenv("LINKKEEP_STORAGE_BACKEND", "memory")
    factory = reload_factory()
    storage = factory.get_storage("LMDB", path=str(tmp_path / "explicit"), map_size=16 * 1024 * 1024,
                                  reclaim_interval=0)
    try:
        assert isinstance(storage, LMDBLinkStore)
    finally:
        storage.close()


def test_get_storage_starts_maintenance(monkeypatch):
    monkeypatch.setenv("LINKKEEP_STORAGE_BACKEND", "memory")
    factory = reload_factory()
    storage = factory.get_storage(reclaim_interval=60)
    try:
        assert storage._maintenance is not None and storage._maintenance.running
    finally:
        storage.close()


def test_get_storage_unknown_backend(monkeypatch):
    monkeypatch.setenv("LINKKEEP_STORAGE_BACKEND", "postgres")
    factory = reload_factory()
    with pytest.raises(ValueError, match="Unknown storage backend"):
        factory.get_storage()
