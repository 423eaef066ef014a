"""
Document decoding.

BsonCursor walks a finished document one element at a time without
materializing it. Typed getters check the stored type and raise TypeMismatch
rather than reinterpreting bytes, so callers can probe alternatives (see
get_long for the int32/int64 policy used by "length" fields).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, Optional, Tuple

from ..errors import DecodeError, TypeMismatch
from .objectid import OID_SIZE, ObjectId
from .types import (
    DOUBLE,
    INT32,
    INT64,
    MIN_DOCUMENT_SIZE,
    UINT64,
    Binary,
    BinarySubtype,
    BsonType,
)

__all__ = ["BsonCursor", "find_by_key", "decode", "iter_documents", "millis_to_datetime"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_FIXED_SIZES = {
    BsonType.DOUBLE: 8,
    BsonType.OID: OID_SIZE,
    BsonType.BOOLEAN: 1,
    BsonType.UTC_DATETIME: 8,
    BsonType.NULL: 0,
    BsonType.INT32: 4,
    BsonType.TIMESTAMP: 8,
    BsonType.INT64: 8,
}


def millis_to_datetime(millis: int) -> datetime:
    """Convert ms since the epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=millis)


def _check_header(doc: bytes) -> int:
    """Validate the length prefix and terminator; return the document size."""
    if len(doc) < MIN_DOCUMENT_SIZE:
        raise DecodeError(f"document too short: {len(doc)} bytes")
    (size,) = INT32.unpack_from(doc, 0)
    if size != len(doc):
        raise DecodeError(f"document length prefix {size} does not match buffer size {len(doc)}")
    if doc[size - 1] != 0:
        raise DecodeError("document is missing its terminator")
    return size


class BsonCursor:
    """
    Forward-only cursor over the elements of one document.

    advance() moves to the next element and returns False at the end. The
    cursor cannot be rewound; create a new one to start over.
    """

    def __init__(self, doc: bytes) -> None:
        self._doc = bytes(doc)
        self._end = _check_header(self._doc) - 1
        self._pos = 4
        self._type: Optional[BsonType] = None
        self._key: Optional[str] = None
        self._value_pos = 0
        self._value_end = 0

    @property
    def document(self) -> bytes:
        return self._doc

    def _read_int32(self, pos: int) -> int:
        if pos + 4 > self._end:
            raise DecodeError(f"truncated element at offset {pos}")
        return INT32.unpack_from(self._doc, pos)[0]

    def _value_size(self, type_: BsonType, pos: int) -> int:
        if type_ in _FIXED_SIZES:
            return _FIXED_SIZES[type_]
        if type_ is BsonType.STRING:
            length = self._read_int32(pos)
            if length < 1:
                raise DecodeError(f"invalid string length {length} at offset {pos}")
            return 4 + length
        if type_ in (BsonType.DOCUMENT, BsonType.ARRAY):
            length = self._read_int32(pos)
            if length < MIN_DOCUMENT_SIZE:
                raise DecodeError(f"invalid embedded document length {length} at offset {pos}")
            return length
        if type_ is BsonType.BINARY:
            length = self._read_int32(pos)
            if length < 0:
                raise DecodeError(f"invalid binary length {length} at offset {pos}")
            return 5 + length
        raise DecodeError(f"unsupported element type {type_!r}")

    def advance(self) -> bool:
        """Move to the next element; False once the document is exhausted."""
        if self._pos >= self._end:
            self._type = None
            self._key = None
            return False

        type_byte = self._doc[self._pos]
        try:
            type_ = BsonType(type_byte)
        except ValueError:
            raise DecodeError(f"unknown element type 0x{type_byte:02x} at offset {self._pos}") from None

        key_end = self._doc.find(b"\x00", self._pos + 1, self._end)
        if key_end == -1:
            raise DecodeError(f"unterminated key at offset {self._pos + 1}")
        try:
            key = self._doc[self._pos + 1:key_end].decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"key at offset {self._pos + 1} is not valid UTF-8") from e

        value_pos = key_end + 1
        value_end = value_pos + self._value_size(type_, value_pos)
        if value_end > self._end:
            raise DecodeError(f"element '{key}' runs past the end of the document")

        self._type = type_
        self._key = key
        self._value_pos = value_pos
        self._value_end = value_end
        self._pos = value_end
        return True

    def find(self, key: str) -> bool:
        """Advance to the next element named key; False if none remains."""
        while self.advance():
            if self._key == key:
                return True
        return False

    @property
    def key(self) -> str:
        if self._key is None:
            raise DecodeError("cursor is not positioned on an element")
        return self._key

    @property
    def type(self) -> BsonType:
        if self._type is None:
            raise DecodeError("cursor is not positioned on an element")
        return self._type

    @property
    def type_name(self) -> str:
        return self.type.type_name

    def fields(self) -> Iterator[Tuple[str, BsonType]]:
        """Yield (key, type) for every remaining element."""
        while self.advance():
            yield self.key, self.type

    def _expect(self, *types: BsonType) -> None:
        actual = self.type
        if actual not in types:
            raise TypeMismatch(self.key, "/".join(t.type_name for t in types), actual.type_name)

    # Typed getters

    def get_string(self) -> str:
        self._expect(BsonType.STRING)
        start = self._value_pos + 4
        if self._doc[self._value_end - 1] != 0:
            raise DecodeError(f"string '{self._key}' is not NUL-terminated")
        try:
            return self._doc[start:self._value_end - 1].decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"string '{self._key}' is not valid UTF-8") from e

    def get_int32(self) -> int:
        self._expect(BsonType.INT32)
        return INT32.unpack_from(self._doc, self._value_pos)[0]

    def get_int64(self) -> int:
        self._expect(BsonType.INT64)
        return INT64.unpack_from(self._doc, self._value_pos)[0]

    def get_long(self) -> int:
        """
        Decode an integer that writers may store at either width.

        Tries int32 first and widens it, then falls back to native int64.
        """
        try:
            return self.get_int32()
        except TypeMismatch:
            pass
        try:
            return self.get_int64()
        except TypeMismatch:
            raise TypeMismatch(self.key, "int32/int64", self.type_name) from None

    def get_double(self) -> float:
        self._expect(BsonType.DOUBLE)
        return DOUBLE.unpack_from(self._doc, self._value_pos)[0]

    def get_boolean(self) -> bool:
        self._expect(BsonType.BOOLEAN)
        flag = self._doc[self._value_pos]
        if flag not in (0, 1):
            raise DecodeError(f"boolean '{self._key}' has invalid value {flag}")
        return flag == 1

    def get_utc_datetime(self) -> int:
        """Return the stored datetime as ms since the epoch."""
        self._expect(BsonType.UTC_DATETIME)
        return INT64.unpack_from(self._doc, self._value_pos)[0]

    def get_timestamp(self) -> int:
        self._expect(BsonType.TIMESTAMP)
        return UINT64.unpack_from(self._doc, self._value_pos)[0]

    def get_oid(self) -> ObjectId:
        self._expect(BsonType.OID)
        return ObjectId(self._doc[self._value_pos:self._value_end])

    def get_binary(self) -> Binary:
        self._expect(BsonType.BINARY)
        subtype = self._doc[self._value_pos + 4]
        data = self._doc[self._value_pos + 5:self._value_end]
        if subtype == BinarySubtype.BINARY_OLD:
            if len(data) < 4 or INT32.unpack_from(data, 0)[0] != len(data) - 4:
                raise DecodeError(f"binary '{self._key}' has an invalid legacy length prefix")
            data = data[4:]
        return Binary(subtype, data)

    def get_document(self) -> bytes:
        self._expect(BsonType.DOCUMENT)
        return self._doc[self._value_pos:self._value_end]

    def get_array(self) -> bytes:
        self._expect(BsonType.ARRAY)
        return self._doc[self._value_pos:self._value_end]

    def value(self) -> Any:
        """Decode the current element to the natural Python value."""
        type_ = self.type
        if type_ is BsonType.STRING:
            return self.get_string()
        if type_ is BsonType.INT32:
            return self.get_int32()
        if type_ is BsonType.INT64:
            return self.get_int64()
        if type_ is BsonType.DOUBLE:
            return self.get_double()
        if type_ is BsonType.BOOLEAN:
            return self.get_boolean()
        if type_ is BsonType.NULL:
            return None
        if type_ is BsonType.UTC_DATETIME:
            return millis_to_datetime(self.get_utc_datetime())
        if type_ is BsonType.TIMESTAMP:
            return self.get_timestamp()
        if type_ is BsonType.OID:
            return self.get_oid()
        if type_ is BsonType.BINARY:
            binary = self.get_binary()
            return binary.data if binary.subtype == BinarySubtype.GENERIC else binary
        if type_ is BsonType.DOCUMENT:
            return decode(self.get_document())
        return list(decode(self.get_array()).values())


def find_by_key(doc: bytes, key: str) -> Optional[BsonCursor]:
    """Return a cursor positioned on the first element named key, or None."""
    cursor = BsonCursor(doc)
    if cursor.find(key):
        return cursor
    return None


def decode(doc: bytes) -> Dict[str, Any]:
    """Decode a whole document; duplicate keys keep their first value."""
    result: Dict[str, Any] = {}
    cursor = BsonCursor(doc)
    while cursor.advance():
        if cursor.key not in result:
            result[cursor.key] = cursor.value()
    return result


def iter_documents(buffer: bytes) -> Iterator[bytes]:
    """Split a buffer of concatenated documents, e.g. a server reply batch."""
    view = memoryview(buffer)
    offset = 0
    total = len(view)
    while offset < total:
        if offset + 4 > total:
            raise DecodeError(f"truncated document header at offset {offset}")
        (size,) = INT32.unpack_from(view, offset)
        if size < MIN_DOCUMENT_SIZE or offset + size > total:
            raise DecodeError(f"invalid document size {size} at offset {offset}")
        doc = bytes(view[offset:offset + size])
        _check_header(doc)
        yield doc
        offset += size
