"""
Tests for stored-object metadata decoding.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mongo_gridfs.codec import DocumentBuilder, ObjectId
from mongo_gridfs.errors import DecodeError, TypeMismatch
from mongo_gridfs.models import StoredObject

OID = ObjectId(bytes.fromhex("6553f100aabbccddeeff0011"))


def _files_doc(*, length=1000, filename="a.txt", extra=None, skip=()):
    builder = DocumentBuilder()
    if "_id" not in skip:
        builder.append_oid("_id", OID)
    if filename is not None:
        builder.append_string("filename", filename)
    if "length" not in skip:
        builder.append_int64("length", length)
    if "chunkSize" not in skip:
        builder.append_int32("chunkSize", 256)
    if "uploadDate" not in skip:
        builder.append_utc_datetime("uploadDate", 1_700_000_000_000)
    if "md5" not in skip:
        builder.append_string("md5", "d41d8cd98f00b204e9800998ecf8427e")
    for key, value in (extra or {}).items():
        builder.append_value(key, value)
    return builder.finish()


class TestStoredObject:
    """Test decoding and derived values."""

    def test_decode(self):
        meta = StoredObject.from_document(_files_doc())
        assert meta.id == OID
        assert meta.filename == "a.txt"
        assert meta.length == 1000
        assert meta.chunk_size == 256
        assert meta.upload_date == 1_700_000_000_000
        assert meta.uploaded_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert meta.md5 == "d41d8cd98f00b204e9800998ecf8427e"

    @pytest.mark.parametrize("length,count", [(0, 0), (1, 1), (256, 1), (257, 2), (1000, 4)])
    def test_chunk_count(self, length, count):
        assert StoredObject.from_document(_files_doc(length=length)).chunk_count == count

    def test_expected_chunk_size(self):
        meta = StoredObject.from_document(_files_doc(length=1000))
        assert [meta.expected_chunk_size(n) for n in range(4)] == [256, 256, 256, 232]

    def test_filename_optional(self):
        assert StoredObject.from_document(_files_doc(filename=None)).filename is None

    @pytest.mark.parametrize("field", ["_id", "length", "chunkSize", "uploadDate", "md5"])
    def test_required_fields(self, field):
        with pytest.raises(DecodeError, match=field):
            StoredObject.from_document(_files_doc(skip=(field,)))

    def test_mistyped_field(self):
        doc = (
            DocumentBuilder()
            .append_oid("_id", OID)
            .append_string("length", "1000")
            .append_int32("chunkSize", 256)
            .append_utc_datetime("uploadDate", 0)
            .append_string("md5", "x")
            .finish()
        )
        with pytest.raises(TypeMismatch):
            StoredObject.from_document(doc)

    def test_negative_length_rejected(self):
        with pytest.raises(DecodeError, match="invalid metadata"):
            StoredObject.from_document(_files_doc(length=-1))

    def test_extras_only_when_requested(self):
        doc = _files_doc(extra={"author": "ana", "tags": ["x"]})
        assert StoredObject.from_document(doc).extra_fields == []

        extras = StoredObject.from_document(doc, with_extras=True).extra_fields
        assert [(f.key, f.type_name) for f in extras] == [("author", "string"), ("tags", "array")]

    def test_chunk_count_serialized(self):
        """Test the derived count is part of the model dump."""
        dumped = StoredObject.from_document(_files_doc(length=1000)).model_dump()
        assert dumped["chunk_count"] == 4
