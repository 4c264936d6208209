"""
Binary Framing

Thin wrapper over msgpack used for every wire payload: canonical key
forms and extended signatures. Byte strings stay bytes, text stays str,
and timezone-aware datetimes travel as msgpack Timestamps.
"""

from datetime import datetime, timezone
from typing import Any

import msgpack

from ..errors import DecodeError


def _default(value: Any) -> Any:
    # Naive datetimes are taken to be UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return msgpack.Timestamp.from_datetime(value.replace(tzinfo=timezone.utc))
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Cannot serialize object of type {type(value).__name__}")


def dump(value: Any) -> bytes:
    """
    Serialize a value to bytes.

    Args:
        value: Map, sequence, bytes, str, int, bool, None or datetime

    Returns:
        The encoded payload
    """
    return msgpack.packb(value, use_bin_type=True, datetime=True, default=_default)


def load(data: bytes) -> Any:
    """
    Deserialize a payload produced by dump().

    Args:
        data: Encoded payload

    Returns:
        The decoded value; timestamps come back as UTC datetimes

    Raises:
        DecodeError: If the payload is malformed or has trailing data
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Expected bytes, got {type(data).__name__}")
    try:
        return msgpack.unpackb(bytes(data), raw=False, timestamp=3, strict_map_key=False)
    except (ValueError, TypeError, msgpack.UnpackException) as e:
        raise DecodeError(f"Malformed payload: {e}")
