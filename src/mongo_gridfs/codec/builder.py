"""
Document encoding.

DocumentBuilder appends typed elements in order and finish() fixes up the
length prefix. encode() and encode_mapping() are conveniences on top of it.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Sequence, Tuple, Union

from ..errors import EncodeError
from .objectid import ObjectId
from .types import (
    DOUBLE,
    INT32,
    INT32_MAX,
    INT32_MIN,
    INT64,
    INT64_MAX,
    INT64_MIN,
    MIN_DOCUMENT_SIZE,
    Binary,
    BinarySubtype,
    BsonType,
)

__all__ = [
    "DocumentBuilder",
    "encode",
    "encode_mapping",
    "datetime_to_millis",
    "EMPTY_DOCUMENT",
]

EMPTY_DOCUMENT = INT32.pack(MIN_DOCUMENT_SIZE) + b"\x00"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Field = Tuple[str, BsonType, Any]


def datetime_to_millis(value: datetime) -> int:
    """Convert a datetime to ms since the epoch; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def _encode_key(key: str) -> bytes:
    raw = key.encode("utf-8")
    if b"\x00" in raw:
        raise EncodeError(f"key contains NUL byte: {key!r}")
    return raw + b"\x00"


def _check_subdocument(doc: bytes) -> bytes:
    if len(doc) < MIN_DOCUMENT_SIZE:
        raise EncodeError("embedded document is shorter than the minimum document size")
    (declared,) = INT32.unpack_from(doc, 0)
    if declared != len(doc) or doc[-1] != 0:
        raise EncodeError("embedded document is not finished")
    return bytes(doc)


class DocumentBuilder:
    """
    Builds one document, element by element.

    Every append_* returns the builder so calls can be chained. finish() is
    terminal: it writes the length prefix and trailing NUL, and any further
    append raises EncodeError. Calling finish() again returns the same bytes.
    """

    def __init__(self) -> None:
        self._body = bytearray()
        self._finished: bytes | None = None

    def _append(self, type_: BsonType, key: str, payload: bytes) -> DocumentBuilder:
        if self._finished is not None:
            raise EncodeError("cannot append to a finished document")
        self._body.append(int(type_))
        self._body += _encode_key(key)
        self._body += payload
        return self

    def append_string(self, key: str, value: str) -> DocumentBuilder:
        raw = value.encode("utf-8")
        return self._append(BsonType.STRING, key, INT32.pack(len(raw) + 1) + raw + b"\x00")

    def append_int32(self, key: str, value: int) -> DocumentBuilder:
        if not INT32_MIN <= value <= INT32_MAX:
            raise EncodeError(f"value for '{key}' does not fit in int32: {value}")
        return self._append(BsonType.INT32, key, INT32.pack(value))

    def append_int64(self, key: str, value: int) -> DocumentBuilder:
        if not INT64_MIN <= value <= INT64_MAX:
            raise EncodeError(f"value for '{key}' does not fit in int64: {value}")
        return self._append(BsonType.INT64, key, INT64.pack(value))

    def append_double(self, key: str, value: float) -> DocumentBuilder:
        return self._append(BsonType.DOUBLE, key, DOUBLE.pack(value))

    def append_boolean(self, key: str, value: bool) -> DocumentBuilder:
        return self._append(BsonType.BOOLEAN, key, b"\x01" if value else b"\x00")

    def append_null(self, key: str) -> DocumentBuilder:
        return self._append(BsonType.NULL, key, b"")

    def append_utc_datetime(self, key: str, value: Union[int, datetime]) -> DocumentBuilder:
        """Append a UTC datetime given as ms since the epoch or a datetime."""
        millis = datetime_to_millis(value) if isinstance(value, datetime) else value
        if not INT64_MIN <= millis <= INT64_MAX:
            raise EncodeError(f"datetime for '{key}' out of range: {millis}")
        return self._append(BsonType.UTC_DATETIME, key, INT64.pack(millis))

    def append_oid(self, key: str, value: Union[ObjectId, bytes]) -> DocumentBuilder:
        oid = value if isinstance(value, ObjectId) else ObjectId(bytes(value))
        return self._append(BsonType.OID, key, oid.binary)

    def append_binary(self, key: str, data: bytes, subtype: int = BinarySubtype.GENERIC) -> DocumentBuilder:
        data = bytes(data)
        if subtype == BinarySubtype.BINARY_OLD:
            # Legacy subtype repeats the length inside the payload
            data = INT32.pack(len(data)) + data
        return self._append(BsonType.BINARY, key, INT32.pack(len(data)) + bytes([int(subtype)]) + data)

    def append_document(self, key: str, doc: bytes) -> DocumentBuilder:
        return self._append(BsonType.DOCUMENT, key, _check_subdocument(doc))

    def append_array(self, key: str, doc: bytes) -> DocumentBuilder:
        return self._append(BsonType.ARRAY, key, _check_subdocument(doc))

    def append_value(self, key: str, value: Any) -> DocumentBuilder:
        """Append a field, inferring its type from the Python value."""
        _append_inferred(self, key, value)
        return self

    def append(self, key: str, type_: BsonType, value: Any = None) -> DocumentBuilder:
        """Append a field given its explicit type."""
        type_ = BsonType(type_)
        if type_ is BsonType.STRING:
            return self.append_string(key, value)
        if type_ is BsonType.INT32:
            return self.append_int32(key, value)
        if type_ is BsonType.INT64:
            return self.append_int64(key, value)
        if type_ is BsonType.DOUBLE:
            return self.append_double(key, value)
        if type_ is BsonType.BOOLEAN:
            return self.append_boolean(key, value)
        if type_ is BsonType.NULL:
            return self.append_null(key)
        if type_ is BsonType.UTC_DATETIME:
            return self.append_utc_datetime(key, value)
        if type_ is BsonType.OID:
            return self.append_oid(key, value)
        if type_ is BsonType.BINARY:
            if isinstance(value, Binary):
                return self.append_binary(key, value.data, value.subtype)
            return self.append_binary(key, value)
        if type_ is BsonType.DOCUMENT:
            return self.append_document(key, value)
        if type_ is BsonType.ARRAY:
            return self.append_array(key, value)
        raise EncodeError(f"encoding {type_.type_name} is not supported")

    def finish(self) -> bytes:
        """Write the length prefix and terminator and return the document."""
        if self._finished is None:
            size = len(self._body) + MIN_DOCUMENT_SIZE
            self._finished = INT32.pack(size) + bytes(self._body) + b"\x00"
        return self._finished

    @property
    def finished(self) -> bool:
        return self._finished is not None


def encode(fields: Iterable[Field]) -> bytes:
    """
    Build a finished document from ordered (key, type, value) triples.

    Example:
        >>> encode([("filename", BsonType.STRING, "a.txt")])
    """
    builder = DocumentBuilder()
    for key, type_, value in fields:
        builder.append(key, type_, value)
    return builder.finish()


def _append_inferred(builder: DocumentBuilder, key: str, value: Any) -> None:
    # bool before int: bool is an int subclass
    if value is None:
        builder.append_null(key)
    elif isinstance(value, bool):
        builder.append_boolean(key, value)
    elif isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            builder.append_int32(key, value)
        else:
            builder.append_int64(key, value)
    elif isinstance(value, float):
        builder.append_double(key, value)
    elif isinstance(value, str):
        builder.append_string(key, value)
    elif isinstance(value, ObjectId):
        builder.append_oid(key, value)
    elif isinstance(value, datetime):
        builder.append_utc_datetime(key, value)
    elif isinstance(value, Binary):
        builder.append_binary(key, value.data, value.subtype)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        builder.append_binary(key, bytes(value))
    elif isinstance(value, Mapping):
        builder.append_document(key, encode_mapping(value))
    elif isinstance(value, Sequence):
        builder.append_array(key, encode_mapping({str(i): item for i, item in enumerate(value)}))
    else:
        raise EncodeError(f"cannot encode value of type {type(value).__name__} for '{key}'")


def encode_mapping(mapping: Mapping[str, Any]) -> bytes:
    """
    Build a finished document from a mapping, inferring each field's type.

    ints become int32 when they fit and int64 otherwise; bytes become generic
    binary; nested mappings and lists become documents and arrays.
    """
    builder = DocumentBuilder()
    for key, value in mapping.items():
        builder.append_value(key, value)
    return builder.finish()
