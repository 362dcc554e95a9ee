"""
Storage factory – switch storage backend from config (lazy env version)
======================================================================

This module centralizes selection of the storage backend (in-memory vs LMDB)
so the rest of the app can stay ignorant of where data lives.

- Reads the backend name and path **at call time** to avoid stale values in tests.
- Imports the LMDB backend **only if** it is selected.

Environment variables
---------------------
- LINKKEEP_STORAGE_BACKEND: "lmdb" (default) or "memory"
- LINKKEEP_DB_PATH:         data directory if backend=="lmdb"
"""

import logging
import os
from typing import Optional

from linkkeep.config import settings
from linkkeep.storage.base import BaseLinkStore
from linkkeep.storage.storage import MemoryLinkStore

log = logging.getLogger("linkkeep.storage")


def get_storage(backend: Optional[str] = None, **kwargs) -> BaseLinkStore:
    """
    Return an open link store based on configuration.

    Parameters
    ----------
    backend : str, optional
        "lmdb" or "memory". If omitted, reads LINKKEEP_STORAGE_BACKEND.
    kwargs : dict
        path=, map_size=, reclaim_interval=, ctx= override the settings.

    Raises
    ------
    ValueError
        Unknown backend name.
    """
    be = (backend or os.getenv("LINKKEEP_STORAGE_BACKEND", "lmdb")).strip().lower()
    reclaim_interval = kwargs.get("reclaim_interval", settings.RECLAIM_INTERVAL)

    log.info("selected storage backend: %r", be)

    if be == "memory":
        return MemoryLinkStore(reclaim_interval=reclaim_interval)

    if be == "lmdb":
        path = kwargs.get("path") or os.getenv("LINKKEEP_DB_PATH", settings.DB_PATH)
        from linkkeep.storage.lmdb_storage import LMDBLinkStore

        return LMDBLinkStore(
            path,
            map_size=kwargs.get("map_size", settings.MAP_SIZE),
            reclaim_interval=reclaim_interval,
            ctx=kwargs.get("ctx"),
        )

    raise ValueError(f"Unknown storage backend: {be!r}")
