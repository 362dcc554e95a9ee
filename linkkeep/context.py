"""
Cancellable operation context for LinkKeep.

Store operations, scrapes and the maintenance loop accept an `OpContext`.
A context is cancelled explicitly (`cancel()`), by passing its deadline, or
when its parent is cancelled. Checking a finished context raises
`CancellationError`, which callers can tell apart from storage failures.

Example
-------
>>> ctx = OpContext.with_timeout(5.0)
>>> store.get_links_by_user(42, ctx=ctx)
>>> ctx.cancel()
>>> ctx.check()
Traceback (most recent call last):
    ...
linkkeep.errors.CancellationError: context cancelled
"""

import threading
import time
from typing import List, Optional

from .errors import CancellationError


class OpContext:
    """Cancellation flag plus optional monotonic deadline."""

    def __init__(self, deadline: Optional[float] = None, parent: Optional["OpContext"] = None) -> None:
        self._event = threading.Event()
        self._children: List["OpContext"] = []
        self._lock = threading.Lock()
        self.parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        if parent is not None:
            parent._adopt(self)

    @classmethod
    def background(cls) -> "OpContext":
        """A context that never expires on its own."""
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float) -> "OpContext":
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: Optional[float] = None) -> "OpContext":
        """Derive a context cancelled together with this one."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        return OpContext(deadline=deadline, parent=self)

    def _adopt(self, child: "OpContext") -> None:
        with self._lock:
            self._children.append(child)
            cancelled = self._event.is_set()
        if cancelled:
            child.cancel()

    def cancel(self) -> None:
        with self._lock:
            self._event.set()
            children = list(self._children)
            self._children.clear()
        for child in children:
            child.cancel()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block up to `timeout` seconds (bounded by the deadline).

        Returns True if the context finished while waiting.
        """
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        if self._event.wait(timeout):
            return True
        return self.expired

    def check(self, operation: Optional[str] = None) -> None:
        if self._event.is_set():
            raise CancellationError("context cancelled", operation=operation)
        if self.expired:
            raise CancellationError("context deadline exceeded", operation=operation)


def ensure_context(ctx: Optional[OpContext]) -> OpContext:
    return ctx if ctx is not None else OpContext.background()
