"""
Key scheme for the link store.

Layout::

    b"user:" | uint64 big-endian (user_id + 2**63) | b":link:" | url (UTF-8)

The user segment is fixed width, so a user's scan prefix can never match a
key belonging to another user, whatever bytes the URL contains (user 1 vs 12
vs 123 included). Offsetting the signed id makes byte order equal numeric
order, negative ids included.

All keys of one user are contiguous in the engine's byte order and sorted by
URL within that range.
"""

import struct
from typing import Tuple

from ..errors import DecodingError, EncodingError, ValidationError
from ..models import INT64_MAX, INT64_MIN

USER_TAG = b"user:"
LINK_TAG = b":link:"
_USER_OFFSET = 2 ** 63
_USER_STRUCT = struct.Struct(">Q")
PREFIX_LEN = len(USER_TAG) + _USER_STRUCT.size + len(LINK_TAG)


def _pack_user(user_id: int) -> bytes:
    if not INT64_MIN <= user_id <= INT64_MAX:
        raise ValidationError("user_id out of int64 range", operation="key", user_id=user_id)
    return _USER_STRUCT.pack(user_id + _USER_OFFSET)


def user_prefix(user_id: int) -> bytes:
    """Scan prefix covering exactly the keys of `user_id`."""
    return USER_TAG + _pack_user(user_id) + LINK_TAG


def link_key(user_id: int, url: str, operation: str = "key") -> bytes:
    """Storage key for the (user_id, url) pair. Raises EncodingError if url is not valid UTF-8."""
    try:
        raw_url = url.encode("utf-8")
    except UnicodeEncodeError as err:
        raise EncodingError("url is not encodable as UTF-8", operation=operation, user_id=user_id) from err
    return user_prefix(user_id) + raw_url


def split_link_key(key: bytes) -> Tuple[int, str]:
    """Inverse of link_key(). Raises DecodingError on a malformed key."""
    if len(key) < PREFIX_LEN or not key.startswith(USER_TAG):
        raise DecodingError("malformed link key", operation="split_key", key=key)
    user_end = len(USER_TAG) + _USER_STRUCT.size
    if key[user_end:PREFIX_LEN] != LINK_TAG:
        raise DecodingError("malformed link key", operation="split_key", key=key)
    (raw_user,) = _USER_STRUCT.unpack(key[len(USER_TAG):user_end])
    try:
        url = key[PREFIX_LEN:].decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecodingError("link key url is not UTF-8", operation="split_key", key=key) from err
    return raw_user - _USER_OFFSET, url
