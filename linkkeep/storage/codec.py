"""
Record codec: Link <-> bytes.

Values are stored as UTF-8 JSON produced by pydantic. JSON keeps the data
directory inspectable with stock LMDB tools and tolerant of added optional
fields (unknown keys are ignored on decode).
"""

from pydantic import ValidationError as PydanticValidationError

from ..errors import DecodingError, EncodingError
from ..models import Link


def encode_link(link: Link) -> bytes:
    """Serialize a record. Raises EncodingError if it cannot be represented."""
    try:
        return link.model_dump_json().encode("utf-8")
    except (PydanticValidationError, TypeError, ValueError) as err:
        raise EncodingError(
            f"cannot encode link: {err}", operation="encode", user_id=link.user_id
        ) from err


def decode_link(data: bytes) -> Link:
    """Parse stored bytes. Raises DecodingError on corrupt or foreign data."""
    try:
        return Link.model_validate_json(data)
    except (PydanticValidationError, UnicodeDecodeError, ValueError) as err:
        raise DecodingError(f"cannot decode link: {err}", operation="decode") from err
