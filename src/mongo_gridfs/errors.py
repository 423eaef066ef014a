"""
GridFS error classes.

Provides a clear taxonomy of errors that can occur while encoding documents,
talking to the backing store, and streaming chunked objects. Transport
implementations map driver exceptions onto these so callers see a consistent
error interface regardless of the underlying connection.
"""
from __future__ import annotations

from typing import Optional


class GridFSError(Exception):
    """Base class for all mongo-gridfs errors."""
    pass


class GridConnectionError(GridFSError):
    """
    The backing store could not be reached.

    Raised when:
    - The initial connection or handshake fails after all retries
    - A reconnect to the replica set primary fails
    """
    pass


class TransportError(GridFSError):
    """
    A single round trip to the backing store failed.

    Raised by Transport implementations; the store translates it into
    IncompleteUploadError on the write path and StreamError on the read
    path (metadata lookup, chunk query, cursor fetches, listing).
    """
    pass


class NotFoundError(GridFSError):
    """
    No stored object matches the requested name or id.

    Raised when:
    - get()/delete_by_name() finds no metadata document with that filename
    - get_by_id()/delete() finds no metadata document with that _id
    """
    pass


class DecodeError(GridFSError, ValueError):
    """
    A document is malformed, or a field is missing or of an unexpected type.

    Raised when:
    - The buffer is truncated, or the length prefix or terminator is wrong
    - A required metadata or chunk field is absent
    """
    pass


class TypeMismatch(DecodeError):
    """
    A typed getter was called on a field stored with a different type.

    The cursor remains positioned on the field, so the caller may retry with
    another getter.
    """

    def __init__(self, key: str, expected: str, actual: str):
        super().__init__(f"field '{key}' is {actual}, expected {expected}")
        self.key = key
        self.expected = expected
        self.actual = actual


class EncodeError(GridFSError, ValueError):
    """
    A value cannot be encoded.

    Raised when:
    - A key contains a NUL byte
    - An integer does not fit the requested width
    - A builder is appended to after finish()
    """
    pass


class StoreError(GridFSError):
    """
    A write to the backing store failed.

    Carries the server error message when one was available, otherwise the
    local error text.
    """
    pass


class IncompleteUploadError(StoreError):
    """
    put() failed part way through.

    Chunks already written for object_id are left in place; the caller may
    remove them with GridStore.delete(object_id).
    """

    def __init__(self, message: str, object_id: Optional[object] = None, chunks_written: int = 0):
        super().__init__(message)
        self.object_id = object_id
        self.chunks_written = chunks_written


class StreamError(GridFSError):
    """
    A chunk stream does not match its metadata.

    Raised when:
    - The cursor ends before the expected chunk count
    - More chunks arrive than expected
    - A chunk's n is out of sequence or its size is wrong
    """
    pass


class ChecksumMismatch(StreamError):
    """Reassembled bytes do not match the md5 recorded in the metadata."""

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


__all__ = [
    "GridFSError",
    "GridConnectionError",
    "TransportError",
    "NotFoundError",
    "DecodeError",
    "TypeMismatch",
    "EncodeError",
    "StoreError",
    "IncompleteUploadError",
    "StreamError",
    "ChecksumMismatch",
]
