"""
Background space reclamation for link stores.

`ReclaimWorker` calls `store.reclaim()` on a fixed interval from a daemon
thread. It is owned by the store: started when the store opens with a
reclaim interval and stopped by `store.close()`, so it never outlives the
engine handle.

Outcomes of a pass:
    - reclaimed > 0      INFO
    - reclaimed == 0     DEBUG only ("nothing to reclaim" is normal)
    - StoreClosedError   the loop ends
    - anything else      ERROR, the loop keeps going

The wait between passes is an event wait on the worker's context, so
`stop()` or cancelling the parent context ends the thread promptly.
"""

import logging
import threading
from typing import Optional

from ..context import OpContext
from ..errors import StoreClosedError

log = logging.getLogger("linkkeep.maintenance")

DEFAULT_INTERVAL = 300.0


class ReclaimWorker:
    def __init__(self, store, interval: float = DEFAULT_INTERVAL, ctx: Optional[OpContext] = None):
        if interval <= 0:
            raise ValueError("reclaim interval must be positive")
        self.store = store
        self.interval = interval
        self.ctx = ctx.child() if ctx is not None else OpContext.background()
        self.passes = 0
        self._thread = threading.Thread(
            target=self.run, name=f"linkkeep-reclaim-{store.backend_name}", daemon=True
        )

    def start(self) -> None:
        log.info("reclaim worker started (interval=%ss)", self.interval)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.ctx.cancel()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def run(self) -> None:
        while not self.ctx.wait(self.interval):
            if not self.sweep():
                break
        log.info("reclaim worker stopped")

    def sweep(self) -> bool:
        """Run one pass. Returns False when the worker should stop."""
        self.passes += 1
        try:
            reclaimed = self.store.reclaim()
        except StoreClosedError:
            return False
        except Exception:
            log.exception("reclaim pass failed")
            return True
        if reclaimed:
            log.info("reclaim pass freed %d unit(s)", reclaimed)
        else:
            log.debug("reclaim pass: nothing to reclaim")
        return True
