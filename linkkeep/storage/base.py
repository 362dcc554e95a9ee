"""
Base storage interface for LinkKeep.

Purpose:
    Define the per-user link store contract once, and keep the rules every
    backend must honor (key validation, timestamp stamping, ordering,
    Open/Closed lifecycle, cancellation) in one place. Backends only supply
    the engine primitives: put, delete, get, prefix scan, close, reclaim.

Lifecycle:
    A store is Open from construction until `close()`, then Closed forever.
    `close()` waits for in-flight operations, stops the maintenance worker
    and releases the engine. Operations started after that raise
    `StoreClosedError`.

Testing & Coverage:
    Engine primitives are abstract and annotated `# pragma: no cover`.
"""

import contextlib
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple

from ..context import OpContext, ensure_context
from ..errors import DecodingError, StoreClosedError, ValidationError
from ..models import Link
from .codec import decode_link, encode_link
from .keys import link_key, user_prefix

log = logging.getLogger("linkkeep.storage")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_key(link: Link) -> datetime:
    return link.timestamp or _EPOCH


class BaseLinkStore(ABC):
    """Abstract per-user link store."""

    backend_name = "abstract"

    def __init__(self) -> None:
        self._state = threading.Condition()
        self._closed = False
        self._in_flight = 0
        self._maintenance = None

    # ---- Lifecycle --------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @contextlib.contextmanager
    def _operation(self, name: str, ctx: OpContext, user_id: Optional[int] = None) -> Iterator[None]:
        """Admit one operation while Open and track it until it finishes."""
        with self._state:
            if self._closed:
                raise StoreClosedError("store is closed", operation=name, user_id=user_id)
            self._in_flight += 1
        try:
            ctx.check(name)
            yield
        finally:
            with self._state:
                self._in_flight -= 1
                if self._in_flight == 0:
                    self._state.notify_all()

    def close(self) -> None:
        """Close the store. Calling it again is a no-op."""
        with self._state:
            if self._closed:
                return
            self._closed = True
            while self._in_flight:
                self._state.wait()
        if self._maintenance is not None:
            self._maintenance.stop()
            self._maintenance = None
        self._close_engine()
        log.info("%s link store closed", self.backend_name)

    def start_maintenance(self, interval: float, ctx: Optional[OpContext] = None) -> None:
        """Run `reclaim()` every `interval` seconds until close() or ctx ends."""
        from .maintenance import ReclaimWorker

        if self._maintenance is not None:
            return
        self._maintenance = ReclaimWorker(self, interval=interval, ctx=ctx)
        self._maintenance.start()

    def __enter__(self) -> "BaseLinkStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- Contract methods -------------------------------------------------

    def save_link(self, link: Link, ctx: Optional[OpContext] = None) -> Link:
        """
        Insert or fully replace the record stored under (user_id, url).

        A missing timestamp is set to the current UTC time. The returned
        record is exactly what was persisted.

        Raises:
            ValidationError, EncodingError, StorageWriteError,
            StoreClosedError, CancellationError
        """
        ctx = ensure_context(ctx)
        with self._operation("save_link", ctx, link.user_id):
            self._validate_natural_key(link.user_id, link.url, "save_link")
            if link.timestamp is None:
                link = link.model_copy(update={"timestamp": datetime.now(timezone.utc)})
            key = link_key(link.user_id, link.url, "save_link")
            self._check_key_size(key, link.user_id, "save_link")
            value = encode_link(link)
            self._put(key, value, ctx)
        log.info("saved link user_id=%s url=%s", link.user_id, link.url)
        return link

    def get_links_by_user(self, user_id: int, ctx: Optional[OpContext] = None) -> List[Link]:
        """
        Return every link of `user_id`, newest first.

        Equal timestamps keep key order (URL bytes). Unknown users yield [].
        One undecodable value fails the whole call with DecodingError.
        """
        ctx = ensure_context(ctx)
        with self._operation("get_links_by_user", ctx, user_id):
            prefix = user_prefix(user_id)
            links = []
            for key, value in self._scan(prefix, ctx):
                try:
                    links.append(decode_link(value))
                except DecodingError as err:
                    log.error("corrupt link record user_id=%s key=%r: %s", user_id, key, err.message)
                    raise DecodingError(
                        err.message, operation="get_links_by_user", user_id=user_id, key=key
                    ) from err
        # sorted() is stable, so ties stay in key order
        links = sorted(links, key=_timestamp_key, reverse=True)
        log.debug("listed %d links for user_id=%s", len(links), user_id)
        return links

    def get_link(self, user_id: int, url: str, ctx: Optional[OpContext] = None) -> Optional[Link]:
        """Return the record stored under (user_id, url), or None."""
        ctx = ensure_context(ctx)
        with self._operation("get_link", ctx, user_id):
            self._validate_natural_key(user_id, url, "get_link")
            key = link_key(user_id, url, "get_link")
            value = self._get(key, ctx)
            if value is None:
                return None
            try:
                return decode_link(value)
            except DecodingError as err:
                raise DecodingError(err.message, operation="get_link", user_id=user_id, key=key) from err

    def delete_link(self, user_id: int, url: str, ctx: Optional[OpContext] = None) -> bool:
        """
        Remove the record under (user_id, url).

        Deleting a missing record succeeds. Returns True if something was
        removed, False otherwise.
        """
        ctx = ensure_context(ctx)
        with self._operation("delete_link", ctx, user_id):
            self._validate_natural_key(user_id, url, "delete_link")
            key = link_key(user_id, url, "delete_link")
            removed = self._delete(key, ctx)
        log.info("deleted link user_id=%s url=%s removed=%s", user_id, url, removed)
        return removed

    def reclaim(self) -> int:
        """
        Run one space-reclamation pass.

        Returns the number of units reclaimed; 0 means there was nothing to do.
        """
        with self._operation("reclaim", OpContext.background()):
            return self._reclaim()

    # ---- Shared helpers ---------------------------------------------------

    @staticmethod
    def _validate_natural_key(user_id: int, url: str, operation: str) -> None:
        if not user_id:
            raise ValidationError("user_id is required", operation=operation, user_id=user_id)
        if not url:
            raise ValidationError("url is required", operation=operation, user_id=user_id)

    def _check_key_size(self, key: bytes, user_id: int, operation: str) -> None:
        limit = self.max_key_size()
        if limit is not None and len(key) > limit:
            raise ValidationError(
                f"url too long for storage key ({len(key)} > {limit} bytes)",
                operation=operation,
                user_id=user_id,
            )

    def max_key_size(self) -> Optional[int]:
        """Largest key the engine accepts, or None for no limit."""
        return None

    # ---- Engine primitives ------------------------------------------------

    @abstractmethod  # pragma: no cover
    def _put(self, key: bytes, value: bytes, ctx: OpContext) -> None:
        """Upsert one entry in a single atomic write."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def _get(self, key: bytes, ctx: OpContext) -> Optional[bytes]:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def _delete(self, key: bytes, ctx: OpContext) -> bool:
        """Delete one entry in a single atomic write; True if it existed."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def _scan(self, prefix: bytes, ctx: OpContext) -> List[Tuple[bytes, bytes]]:
        """All (key, value) pairs starting with `prefix`, in key order, from one snapshot."""
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def _reclaim(self) -> int:
        raise NotImplementedError

    @abstractmethod  # pragma: no cover
    def _close_engine(self) -> None:
        raise NotImplementedError
