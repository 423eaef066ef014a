"""
Tests for document encoding.

Byte layouts are checked against hand-assembled documents so the wire format
is pinned independently of the decoder.
"""
from __future__ import annotations

import struct
from datetime import datetime, timezone

import pytest

from mongo_gridfs.codec import (
    EMPTY_DOCUMENT,
    Binary,
    BinarySubtype,
    BsonType,
    DocumentBuilder,
    ObjectId,
    decode,
    encode,
    encode_mapping,
)
from mongo_gridfs.errors import EncodeError


def _doc(body: bytes) -> bytes:
    return struct.pack("<i", len(body) + 5) + body + b"\x00"


class TestDocumentBuilder:
    """Test element encoding and document framing."""

    def test_empty_document(self):
        """Test an empty document is the 5-byte minimum."""
        assert DocumentBuilder().finish() == b"\x05\x00\x00\x00\x00"
        assert EMPTY_DOCUMENT == b"\x05\x00\x00\x00\x00"

    def test_string_layout(self):
        """Test strings carry length including the terminator."""
        doc = DocumentBuilder().append_string("a", "hi").finish()
        assert doc == _doc(b"\x02a\x00" + struct.pack("<i", 3) + b"hi\x00")

    def test_int32_and_int64_layout(self):
        """Test integers are little-endian at their declared width."""
        doc = DocumentBuilder().append_int32("n", 1).append_int64("l", 2).finish()
        expected = _doc(
            b"\x10n\x00" + struct.pack("<i", 1)
            + b"\x12l\x00" + struct.pack("<q", 2)
        )
        assert doc == expected

    def test_length_prefix_matches_size(self):
        """Test the length prefix always equals the total byte size."""
        doc = (
            DocumentBuilder()
            .append_string("filename", "a.txt")
            .append_double("d", 1.5)
            .append_boolean("b", True)
            .append_null("z")
            .finish()
        )
        assert struct.unpack_from("<i", doc)[0] == len(doc)
        assert doc[-1] == 0

    def test_int32_range_checked(self):
        """Test values outside int32 are rejected rather than truncated."""
        with pytest.raises(EncodeError):
            DocumentBuilder().append_int32("n", 2 ** 31)

    def test_int64_range_checked(self):
        """Test values outside int64 are rejected."""
        with pytest.raises(EncodeError):
            DocumentBuilder().append_int64("n", 2 ** 63)

    def test_key_with_nul_rejected(self):
        """Test keys cannot contain NUL bytes."""
        with pytest.raises(EncodeError, match="NUL"):
            DocumentBuilder().append_null("a\x00b")

    def test_finish_is_terminal(self):
        """Test appends after finish() fail and finish() is idempotent."""
        builder = DocumentBuilder().append_int32("n", 1)
        first = builder.finish()
        assert builder.finished
        assert builder.finish() == first
        with pytest.raises(EncodeError, match="finished"):
            builder.append_int32("m", 2)

    def test_oid_layout(self):
        """Test object ids are written as their raw 12 bytes."""
        oid = ObjectId(bytes(range(12)))
        doc = DocumentBuilder().append_oid("_id", oid).finish()
        assert doc == _doc(b"\x07_id\x00" + bytes(range(12)))

    def test_generic_binary_layout(self):
        """Test generic binary is length, subtype, payload."""
        doc = DocumentBuilder().append_binary("data", b"abc").finish()
        assert doc == _doc(b"\x05data\x00" + struct.pack("<i", 3) + b"\x00abc")

    def test_legacy_binary_layout(self):
        """Test subtype 0x02 repeats the length inside the payload."""
        doc = DocumentBuilder().append_binary("data", b"abc", BinarySubtype.BINARY_OLD).finish()
        assert doc == _doc(b"\x05data\x00" + struct.pack("<i", 7) + b"\x02" + struct.pack("<i", 3) + b"abc")

    def test_utc_datetime_from_datetime(self):
        """Test datetimes are stored as ms since the epoch."""
        when = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        doc = DocumentBuilder().append_utc_datetime("t", when).finish()
        assert doc == _doc(b"\x09t\x00" + struct.pack("<q", 1_700_000_000_000))

    def test_unfinished_subdocument_rejected(self):
        """Test embedding requires a finished document."""
        with pytest.raises(EncodeError):
            DocumentBuilder().append_document("sub", b"\x01\x02")

    def test_explicit_type_dispatch(self):
        """Test append() with an explicit type matches the typed method."""
        explicit = DocumentBuilder().append("n", BsonType.INT64, 5).finish()
        typed = DocumentBuilder().append_int64("n", 5).finish()
        assert explicit == typed

    def test_timestamp_encoding_not_supported(self):
        """Test unsupported explicit types raise EncodeError."""
        with pytest.raises(EncodeError, match="timestamp"):
            DocumentBuilder().append("ts", BsonType.TIMESTAMP, 0)


class TestEncodeHelpers:
    """Test the convenience encoders."""

    def test_encode_triples(self):
        """Test encode() preserves field order."""
        doc = encode([
            ("b", BsonType.INT32, 2),
            ("a", BsonType.STRING, "x"),
        ])
        assert list(decode(doc)) == ["b", "a"]

    def test_encode_mapping_infers_types(self):
        """Test Python values map onto the natural element types."""
        oid = ObjectId(b"\x01" * 12)
        doc = encode_mapping({
            "small": 1,
            "big": 2 ** 40,
            "flag": True,
            "ratio": 0.5,
            "text": "hello",
            "id": oid,
            "blob": b"\x00\x01",
            "nothing": None,
            "nested": {"k": "v"},
            "items": [1, "two"],
        })
        assert decode(doc) == {
            "small": 1,
            "big": 2 ** 40,
            "flag": True,
            "ratio": 0.5,
            "text": "hello",
            "id": oid,
            "blob": b"\x00\x01",
            "nothing": None,
            "nested": {"k": "v"},
            "items": [1, "two"],
        }

    def test_encode_mapping_int_widths(self):
        """Test ints use int32 when they fit and int64 otherwise."""
        doc = encode_mapping({"a": 7, "b": 2 ** 33})
        assert doc[4] == BsonType.INT32
        assert BsonType.INT64 in doc

    def test_binary_subtype_preserved(self):
        """Test Binary values keep their subtype."""
        doc = encode_mapping({"u": Binary(BinarySubtype.UUID, b"\x00" * 16)})
        assert decode(doc)["u"] == Binary(BinarySubtype.UUID, b"\x00" * 16)

    def test_unencodable_value(self):
        """Test unsupported Python types raise EncodeError."""
        with pytest.raises(EncodeError, match="cannot encode"):
            encode_mapping({"s": {1, 2}})
