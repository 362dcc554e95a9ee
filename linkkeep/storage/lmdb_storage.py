"""
LMDBLinkStore – LMDB-backed storage for LinkKeep
================================================

This module provides the production storage backend: an embedded, ordered,
transactional key-value engine (LMDB, through the `lmdb` binding) living in a
single data directory. It implements `BaseLinkStore`, so the manager and the
HTTP layer never see the engine.

Key Design Points
-----------------
- **Keys**: `user:<u64 user>:link:<url>` (see `keys.py`). One user's records
  are contiguous, so listing is a single cursor walk from `set_range(prefix)`.
- **Upserts**: `txn.put(..., overwrite=True)` inside one write transaction per
  call. The write commits when the `with env.begin(write=True)` block exits
  cleanly and aborts on any exception, cancellation included.
- **Snapshots**: read transactions are MVCC snapshots. A scan never sees a
  half-applied save or delete and never waits for a writer.
- **Reclaim**: LMDB reuses freed pages itself, but pages still visible to a
  reader slot cannot be reused. Reader slots left behind by crashed
  processes pin old versions forever; `reader_check()` clears them. That is
  the periodic pass. `compact_copy()` writes a compacted copy for offline use.

Example
-------
>>> store = LMDBLinkStore("/tmp/linkkeep-data")
>>> store.save_link(Link(url="https://example.com", user_id=42))
>>> [l.url for l in store.get_links_by_user(42)]
['https://example.com']
>>> store.close()
"""

import logging
import os
from typing import List, Optional, Tuple

import lmdb

from ..context import OpContext
from ..errors import StorageOpenError, StorageReadError, StorageWriteError
from .base import BaseLinkStore
from .keys import split_link_key

log = logging.getLogger("linkkeep.storage")

DEFAULT_MAP_SIZE = 1024 * 1024 * 1024  # 1 GiB


class LMDBLinkStore(BaseLinkStore):
    """LMDB implementation of the link store contract.

    Parameters
    ----------
    path : str
        Data directory; created if missing.
    map_size : int
        Maximum size of the memory map (and of the database), in bytes.
    reclaim_interval : float, optional
        Seconds between reclaim passes; None or 0 disables the worker.
    ctx : OpContext, optional
        Parent context of the maintenance worker. Cancelling it stops the
        worker without closing the store.
    """

    backend_name = "lmdb"

    def __init__(
        self,
        path: str,
        map_size: int = DEFAULT_MAP_SIZE,
        reclaim_interval: Optional[float] = None,
        ctx: Optional[OpContext] = None,
    ) -> None:
        super().__init__()
        self.path = path
        try:
            os.makedirs(path, exist_ok=True)
            self.env = lmdb.open(path, map_size=map_size, subdir=True, max_dbs=0)
        except (OSError, lmdb.Error) as err:
            log.error("failed to open LMDB at %s: %s", path, err)
            raise StorageOpenError(f"cannot open lmdb at {path}: {err}", operation="open") from err
        self._max_key_size = self.env.max_key_size()
        log.info("LMDB opened at %s (map_size=%d)", path, map_size)
        if reclaim_interval:
            self.start_maintenance(reclaim_interval, ctx=ctx)

    def max_key_size(self) -> Optional[int]:
        return self._max_key_size

    # ---- Engine primitives ------------------------------------------------

    def _put(self, key: bytes, value: bytes, ctx: OpContext) -> None:
        user_id, _ = split_link_key(key)
        try:
            with self.env.begin(write=True) as txn:
                ctx.check("save_link")
                txn.put(key, value, overwrite=True)
        except lmdb.Error as err:
            log.error("LMDB write failed key=%r: %s", key, err)
            raise StorageWriteError(
                f"failed to save link: {err}", operation="save_link", user_id=user_id, key=key
            ) from err

    def _get(self, key: bytes, ctx: OpContext) -> Optional[bytes]:
        try:
            with self.env.begin() as txn:
                return txn.get(key)
        except lmdb.Error as err:
            log.error("LMDB read failed key=%r: %s", key, err)
            raise StorageReadError(f"failed to read link: {err}", operation="get_link", key=key) from err

    def _delete(self, key: bytes, ctx: OpContext) -> bool:
        user_id, _ = split_link_key(key)
        try:
            with self.env.begin(write=True) as txn:
                ctx.check("delete_link")
                return txn.delete(key)
        except lmdb.Error as err:
            log.error("LMDB delete failed key=%r: %s", key, err)
            raise StorageWriteError(
                f"failed to delete link: {err}", operation="delete_link", user_id=user_id, key=key
            ) from err

    def _scan(self, prefix: bytes, ctx: OpContext) -> List[Tuple[bytes, bytes]]:
        items = []
        try:
            with self.env.begin() as txn:
                cursor = txn.cursor()
                if not cursor.set_range(prefix):
                    return items
                for key, value in cursor.iternext():
                    if not key.startswith(prefix):
                        break
                    ctx.check("get_links_by_user")
                    items.append((key, value))
        except lmdb.Error as err:
            log.error("LMDB scan failed prefix=%r: %s", prefix, err)
            raise StorageReadError(
                f"failed to scan links: {err}", operation="get_links_by_user", key=prefix
            ) from err
        return items

    def _reclaim(self) -> int:
        try:
            return self.env.reader_check()
        except lmdb.Error as err:
            raise StorageWriteError(f"reader check failed: {err}", operation="reclaim") from err

    def _close_engine(self) -> None:
        self.env.close()

    # ---- Optional helpers -------------------------------------------------

    def compact_copy(self, path: str) -> None:
        """Write a compacted copy of the environment into the empty directory `path`."""
        with self._operation("compact_copy", OpContext.background()):
            os.makedirs(path, exist_ok=True)
            try:
                self.env.copy(path, compact=True)
            except lmdb.Error as err:
                raise StorageReadError(f"compacting copy failed: {err}", operation="compact_copy") from err
        log.info("wrote compacted copy of %s to %s", self.path, path)

    def stats(self) -> dict:
        """Entry count and page usage of the main database."""
        with self._operation("stats", OpContext.background()):
            stat = self.env.stat()
            info = self.env.info()
        return {
            "entries": stat["entries"],
            "depth": stat["depth"],
            "map_size": info["map_size"],
            "last_pgno": info["last_pgno"],
            "readers": info["num_readers"],
        }
