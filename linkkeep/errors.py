"""
Error taxonomy for LinkKeep.

Every failure raised by the link store derives from `LinkStoreError`, so
callers (the chat manager, the HTTP layer) can catch one base class and map
the concrete subclass to a user-facing outcome.

Hierarchy:
    LinkStoreError
    ├── ValidationError      missing or unusable key fields
    ├── EncodingError        record could not be serialized
    ├── DecodingError        stored bytes could not be parsed back
    ├── StorageError
    │   ├── StorageOpenError
    │   ├── StorageReadError
    │   └── StorageWriteError
    ├── StoreClosedError     operation after close()
    └── CancellationError    context cancelled or deadline passed

Context fields (`operation`, `user_id`, `key`) are attached where known and
rendered into the message; the original exception is chained with
`raise ... from err` at the raise site.
"""

from typing import Optional, Union


class LinkStoreError(Exception):
    """Base class for all link store failures."""

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        user_id: Optional[int] = None,
        key: Optional[Union[bytes, str]] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.user_id = user_id
        self.key = key
        super().__init__(self._render())

    def _render(self) -> str:
        parts = []
        if self.operation:
            parts.append(f"op={self.operation}")
        if self.user_id is not None:
            parts.append(f"user_id={self.user_id}")
        if self.key is not None:
            key = self.key
            if isinstance(key, bytes):
                key = key.decode("utf-8", errors="backslashreplace")
            parts.append(f"key={key!r}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class ValidationError(LinkStoreError):
    """The record's natural key (user_id, url) is missing or unusable."""


class EncodingError(LinkStoreError):
    """A record could not be serialized."""


class DecodingError(LinkStoreError):
    """Stored bytes could not be turned back into a record."""


class StorageError(LinkStoreError):
    """Engine-level failure."""


class StorageOpenError(StorageError):
    pass


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass


class StoreClosedError(LinkStoreError):
    """The store has been closed; no further operations are accepted."""


class CancellationError(LinkStoreError):
    """The operation's context was cancelled or its deadline passed."""
