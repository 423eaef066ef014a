"""
BSON element type codes and names.

Single source of truth for the type bytes the codec reads and writes.
"""
from __future__ import annotations

import struct
from enum import IntEnum
from typing import NamedTuple


class BsonType(IntEnum):
    """Element type byte as it appears on the wire."""
    DOUBLE = 0x01
    STRING = 0x02
    DOCUMENT = 0x03
    ARRAY = 0x04
    BINARY = 0x05
    OID = 0x07
    BOOLEAN = 0x08
    UTC_DATETIME = 0x09
    NULL = 0x0A
    INT32 = 0x10
    TIMESTAMP = 0x11
    INT64 = 0x12

    @property
    def type_name(self) -> str:
        """Lowercase name used in listings, e.g. ``"utc_datetime"``."""
        return self.name.lower()


class BinarySubtype(IntEnum):
    GENERIC = 0x00
    FUNCTION = 0x01
    BINARY_OLD = 0x02
    UUID_OLD = 0x03
    UUID = 0x04
    MD5 = 0x05
    USER_DEFINED = 0x80


class Binary(NamedTuple):
    """Binary payload together with its subtype."""
    subtype: int
    data: bytes


# Fixed-width encodings, little-endian per the BSON wire format
INT32 = struct.Struct("<i")
INT64 = struct.Struct("<q")
DOUBLE = struct.Struct("<d")
UINT64 = struct.Struct("<Q")

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Smallest valid document: int32 length + terminator
MIN_DOCUMENT_SIZE = 5


__all__ = [
    "BsonType",
    "BinarySubtype",
    "Binary",
    "INT32",
    "INT64",
    "DOUBLE",
    "UINT64",
    "INT32_MIN",
    "INT32_MAX",
    "INT64_MIN",
    "INT64_MAX",
    "MIN_DOCUMENT_SIZE",
]
