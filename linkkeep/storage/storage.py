"""
Storage module for LinkKeep (in-memory implementation).

Responsibilities:
    - Keep encoded link records in a byte-ordered map
    - Serve per-user prefix scans from a consistent snapshot
    - Count obsolete versions left by upserts/deletes and reclaim them on demand

Design:
    - This is an in-memory reference implementation that satisfies the
      BaseLinkStore contract with the same key scheme and codec as LMDB, so
      the two backends behave identically at the contract level.
    - Writes take a lock; scans copy the matching slice under the lock and
      iterate the copy, which gives readers a point-in-time view.
    - Nothing survives the process. Use the LMDB backend for real data.

LLM Prompt Example:
    "Explain how an in-memory store can mimic an ordered KV engine's prefix
     scans and snapshot reads so contract tests run against both backends."
"""

import bisect
import threading
from typing import Dict, List, Optional, Tuple

from ..context import OpContext
from .base import BaseLinkStore


class MemoryLinkStore(BaseLinkStore):
    backend_name = "memory"

    def __init__(self, reclaim_interval: Optional[float] = None):
        """
        Initialize an empty store.

        Internal schema:
            self._data = {link_key: encoded_link}
            self._keys = sorted list of the same keys (scan order)
            self._garbage = versions replaced or deleted since the last reclaim
        """
        super().__init__()
        self._lock = threading.Lock()
        self._data: Dict[bytes, bytes] = {}
        self._keys: List[bytes] = []
        self._garbage = 0
        if reclaim_interval:
            self.start_maintenance(reclaim_interval)

    def _put(self, key: bytes, value: bytes, ctx: OpContext) -> None:
        with self._lock:
            ctx.check("save_link")
            if key in self._data:
                self._garbage += 1
            else:
                bisect.insort(self._keys, key)
            self._data[key] = value

    def _get(self, key: bytes, ctx: OpContext) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def _delete(self, key: bytes, ctx: OpContext) -> bool:
        with self._lock:
            ctx.check("delete_link")
            if key not in self._data:
                return False
            del self._data[key]
            self._keys.pop(bisect.bisect_left(self._keys, key))
            self._garbage += 1
            return True

    def _scan(self, prefix: bytes, ctx: OpContext) -> List[Tuple[bytes, bytes]]:
        with self._lock:
            start = bisect.bisect_left(self._keys, prefix)
            snapshot = []
            for key in self._keys[start:]:
                if not key.startswith(prefix):
                    break
                snapshot.append((key, self._data[key]))
        ctx.check("get_links_by_user")
        return snapshot

    def _reclaim(self) -> int:
        with self._lock:
            reclaimed, self._garbage = self._garbage, 0
        return reclaimed

    def _close_engine(self) -> None:
        with self._lock:
            self._data.clear()
            self._keys.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
