"""
Record model for LinkKeep.

`Link` is the only entity the store persists. Its natural key is the pair
(user_id, url): a URL is unique within one user's collection, while the same
URL may be saved independently by any number of users.

The JSON field names of this model are part of the on-disk format; renaming
a field is a breaking change for existing data directories.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class Link(BaseModel):
    """A saved web page and the metadata scraped for it."""

    url: str
    title: str = ""
    description: str = ""
    user_id: int = Field(ge=INT64_MIN, le=INT64_MAX)
    # None is the "not set yet" value; the store stamps it on save.
    timestamp: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    read: bool = False
    preview_image_url: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PageMetadata(BaseModel):
    """What a scraper could extract from a page; every field may be empty."""

    title: str = ""
    description: str = ""
    image_url: Optional[str] = None
