"""
Data models for stored objects.

StoredObject is the decoded form of one document in the files collection.
The pydantic model gives validation of the decoded values; the conversion
from raw BSON goes through the codec's typed getters so a missing or
mistyped field surfaces as DecodeError.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field

from .codec import BsonCursor, ObjectId, find_by_key, millis_to_datetime
from .errors import DecodeError

__all__ = ["ExtraField", "StoredObject", "KNOWN_FILE_KEYS"]

# Fields with fixed meaning in a files document; anything else is extra metadata
KNOWN_FILE_KEYS = ("_id", "length", "chunkSize", "uploadDate", "md5", "filename")


class ExtraField(BaseModel):
    """A caller-supplied metadata key and its stored type."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Field name")
    type_name: str = Field(description="Codec type name, e.g. 'string' or 'int32'")


class StoredObject(BaseModel):
    """
    Metadata for one stored object.

    Invariants:
    - length: total byte count, equal to the sum of all chunk payloads
    - chunk_count: ceil(length / chunk_size) chunk documents exist for id
    - upload_date: ms since the epoch, UTC
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    id: ObjectId = Field(description="12-byte object id")
    filename: Optional[str] = Field(default=None, description="Name given at upload; not unique")
    length: int = Field(ge=0, description="Object size in bytes")
    chunk_size: int = Field(gt=0, description="Payload size of every chunk but the last")
    upload_date: int = Field(description="Upload time, ms since the epoch")
    md5: str = Field(description="Hex md5 of the full content")
    extra_fields: List[ExtraField] = Field(
        default_factory=list,
        description="Keys beyond the known ones, in document order (verbose decode only)"
    )

    @computed_field
    @property
    def chunk_count(self) -> int:
        return math.ceil(self.length / self.chunk_size)

    @property
    def uploaded_at(self) -> datetime:
        return millis_to_datetime(self.upload_date)

    def expected_chunk_size(self, n: int) -> int:
        """Payload size chunk n must have."""
        if n < self.chunk_count - 1:
            return self.chunk_size
        return self.length - self.chunk_size * (self.chunk_count - 1)

    @classmethod
    def from_document(cls, doc: bytes, *, with_extras: bool = False) -> StoredObject:
        """
        Decode a files-collection document.

        Args:
            doc: Finished BSON document
            with_extras: Also collect the names and types of unknown keys

        Raises:
            DecodeError: If _id, length, chunkSize, uploadDate or md5 is missing
                or mistyped, if filename is present but not a string, or if the
                decoded values are out of range
        """
        def required(key: str) -> BsonCursor:
            cursor = find_by_key(doc, key)
            if cursor is None:
                raise DecodeError(f"metadata field '{key}' is missing")
            return cursor

        object_id = required("_id").get_oid()
        length = required("length").get_long()
        chunk_size = required("chunkSize").get_int32()
        upload_date = required("uploadDate").get_utc_datetime()
        md5 = required("md5").get_string()

        filename_cursor = find_by_key(doc, "filename")
        filename = filename_cursor.get_string() if filename_cursor is not None else None

        extras: List[ExtraField] = []
        if with_extras:
            extras = [
                ExtraField(key=key, type_name=type_.type_name)
                for key, type_ in BsonCursor(doc).fields()
                if key not in KNOWN_FILE_KEYS
            ]

        try:
            return cls(
                id=object_id,
                filename=filename,
                length=length,
                chunk_size=chunk_size,
                upload_date=upload_date,
                md5=md5,
                extra_fields=extras,
            )
        except ValidationError as e:
            raise DecodeError(f"invalid metadata for {object_id}: {e}") from e
