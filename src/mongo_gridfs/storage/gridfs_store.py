"""
Chunked object store.

Implements put/get/list/delete over the two-collection GridFS layout:

    <db>.<prefix>.files   one metadata document per object
    <db>.<prefix>.chunks  {_id, files_id, n, data} per chunk

Write order is chunks first, metadata last. A failure between the two leaves
chunks without a files document; put() reports that as IncompleteUploadError
carrying the object id, and delete() accepts such orphaned ids.
"""
from __future__ import annotations

import hashlib
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, Mapping, Optional, Union

from ..codec import (
    EMPTY_DOCUMENT,
    DocumentBuilder,
    ObjectId,
    ObjectIdGenerator,
    encode_mapping,
    find_by_key,
)
from ..codec.types import INT32_MAX
from ..errors import (
    ChecksumMismatch,
    DecodeError,
    EncodeError,
    IncompleteUploadError,
    NotFoundError,
    StoreError,
    StreamError,
    TransportError,
)
from ..models import KNOWN_FILE_KEYS, StoredObject
from ..settings import DEFAULT_CHUNK_SIZE, Settings
from .base import Transport
from .cursor import StreamingCursor
from .namespaces import build_namespaces

__all__ = ["GridStore", "ChunkStream", "ListedObject"]

logger = logging.getLogger(__name__)

Source = Union[bytes, bytearray, memoryview, BinaryIO]


def _iter_source(source: Source, chunk_size: int) -> Iterator[bytes]:
    """Yield chunk_size slices of source; only the last may be shorter."""
    if hasattr(source, "read"):
        pending = b""
        while True:
            block = source.read(chunk_size - len(pending))
            if not block:
                if pending:
                    yield pending
                return
            pending += block
            if len(pending) == chunk_size:
                yield pending
                pending = b""
    else:
        view = memoryview(source)
        for offset in range(0, len(view), chunk_size):
            yield bytes(view[offset:offset + chunk_size])


def _oid_filter(key: str, object_id: ObjectId) -> bytes:
    return DocumentBuilder().append_oid(key, object_id).finish()


@dataclass(frozen=True)
class ListedObject:
    """
    One entry from GridStore.list().

    Exactly one of meta and error is set; error means this document could not
    be decoded, which does not stop the listing.
    """
    document: bytes
    meta: Optional[StoredObject] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChunkStream:
    """
    Lazy, single-use stream of an object's chunk payloads.

    Iterating yields each chunk's bytes in ascending n order. The stream checks
    every chunk against the metadata and raises StreamError instead of
    returning a truncated or reordered object. The underlying cursor is closed
    when iteration ends, fails, or close() is called.
    """

    def __init__(self, meta: StoredObject, cursor: StreamingCursor, *, verify_md5: bool = True) -> None:
        self.meta = meta
        self._cursor = cursor
        self._verify_md5 = verify_md5
        self._iterator: Optional[Iterator[bytes]] = None

    def __iter__(self) -> Iterator[bytes]:
        if self._iterator is not None:
            raise StreamError(f"chunk stream for {self.meta.id} can only be consumed once")
        self._iterator = self._iterate()
        return self._iterator

    def _decode_chunk(self, doc: bytes, expected_n: int) -> bytes:
        cursor = find_by_key(doc, "files_id")
        if cursor is None:
            raise DecodeError("chunk field 'files_id' is missing")
        if cursor.get_oid() != self.meta.id:
            raise StreamError(f"chunk {expected_n} belongs to {cursor.get_oid()}, not {self.meta.id}")

        cursor = find_by_key(doc, "n")
        if cursor is None:
            raise DecodeError("chunk field 'n' is missing")
        n = cursor.get_int32()
        if n != expected_n:
            raise StreamError(f"chunk out of sequence for {self.meta.id}: expected n={expected_n}, got n={n}")

        cursor = find_by_key(doc, "data")
        if cursor is None:
            raise DecodeError(f"chunk {n} field 'data' is missing")
        data = cursor.get_binary().data

        expected_size = self.meta.expected_chunk_size(n)
        if len(data) != expected_size:
            raise StreamError(f"chunk {n} of {self.meta.id} has {len(data)} bytes, expected {expected_size}")
        return data

    def _advance(self, n: int, expected: int) -> bool:
        try:
            return self._cursor.next()
        except TransportError as e:
            raise StreamError(
                f"chunk stream for {self.meta.id} failed after {n} of {expected} chunk(s): {e}"
            ) from e

    def _iterate(self) -> Iterator[bytes]:
        expected = self.meta.chunk_count
        digest = hashlib.md5()
        n = 0
        try:
            while self._advance(n, expected):
                if n >= expected:
                    raise StreamError(f"{self.meta.id} has more than the expected {expected} chunk(s)")
                data = self._decode_chunk(self._cursor.current_raw(), n)
                digest.update(data)
                n += 1
                logger.debug("Read chunk %d/%d of %s", n, expected, self.meta.id)
                yield data

            if n < expected:
                raise StreamError(f"chunk stream for {self.meta.id} ended after {n} of {expected} chunk(s)")

            actual = digest.hexdigest()
            if self._verify_md5 and actual != self.meta.md5.lower():
                raise ChecksumMismatch(
                    f"md5 mismatch for {self.meta.id}: expected {self.meta.md5}, got {actual}",
                    expected=self.meta.md5,
                    actual=actual
                )
        finally:
            self._cursor.close()

    def write_to(self, out: BinaryIO) -> int:
        """Drain the stream into a writable binary file; return bytes written."""
        written = 0
        for data in self:
            out.write(data)
            written += len(data)
        return written

    def read(self) -> bytes:
        """Drain the stream into memory."""
        return b"".join(self)

    def close(self) -> None:
        if self._iterator is not None:
            self._iterator.close()
        self._cursor.close()

    def __enter__(self) -> ChunkStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class GridStore:
    """
    GridFS storage over a Transport.

    The store holds no per-operation state; each call performs its own round
    trips. Object ids come from the store's ObjectIdGenerator, created from
    seed unless one is injected.
    """

    def __init__(
        self,
        transport: Transport,
        db: str,
        prefix: str = "fs",
        *,
        generator: Optional[ObjectIdGenerator] = None,
        seed: int = 0,
        clock: Callable[[], float] = time.time
    ) -> None:
        self._transport = transport
        self.namespaces = build_namespaces(db, prefix)
        self._ids = generator if generator is not None else ObjectIdGenerator(seed)
        self._clock = clock

    @classmethod
    def from_settings(cls, transport: Transport, settings: Settings, **kwargs) -> GridStore:
        return cls(transport, settings.db, settings.collection, **kwargs)

    def _server_message(self, error: Exception) -> str:
        """Prefer the server's last error over the local exception text."""
        try:
            message = self._transport.last_error(self.namespaces.db)
        except TransportError as e:
            logger.debug("last_error lookup failed: %s", e)
            message = None
        return message or str(error)

    @contextmanager
    def _reading(self, what: str) -> Iterator[None]:
        """Report a failed read round trip as StreamError."""
        try:
            yield
        except TransportError as e:
            raise StreamError(f"reading {what} failed: {self._server_message(e)}") from e

    def _insert(self, namespace: str, doc: bytes, object_id: ObjectId, chunks_written: int) -> None:
        try:
            self._transport.insert(namespace, doc)
        except TransportError as e:
            raise IncompleteUploadError(
                f"upload of {object_id} incomplete after {chunks_written} chunk(s): {self._server_message(e)}",
                object_id=object_id,
                chunks_written=chunks_written
            ) from e

    def put(
        self,
        name: str,
        source: Source,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        metadata: Optional[Mapping[str, object]] = None
    ) -> StoredObject:
        """
        Store source under name.

        Args:
            name: Filename recorded in the metadata document
            source: Bytes-like object, or a binary file read chunk_size at a time
            chunk_size: Payload size of every chunk but the last
            metadata: Extra fields for the metadata document

        Returns:
            Metadata of the stored object

        Raises:
            ValueError: If chunk_size is out of range
            EncodeError: If metadata collides with a reserved key or cannot be encoded
            IncompleteUploadError: If any write fails; chunks written so far remain
        """
        if not 0 < chunk_size <= INT32_MAX:
            raise ValueError(f"chunk_size must be positive and fit in int32, got {chunk_size}")

        extra = dict(metadata or {})
        reserved = sorted(set(extra) & set(KNOWN_FILE_KEYS))
        if reserved:
            raise EncodeError(f"metadata may not set reserved field(s): {', '.join(reserved)}")
        # Fail on unencodable metadata before anything is written
        encode_mapping(extra)

        object_id = self._ids.next()
        logger.info("Uploading '%s' as %s (chunk size %d)", name, object_id, chunk_size)

        digest = hashlib.md5()
        length = 0
        n = 0
        for data in _iter_source(source, chunk_size):
            chunk = (
                DocumentBuilder()
                .append_oid("_id", self._ids.next())
                .append_oid("files_id", object_id)
                .append_int32("n", n)
                .append_binary("data", data)
                .finish()
            )
            self._insert(self.namespaces.chunks, chunk, object_id, n)
            digest.update(data)
            length += len(data)
            n += 1
            logger.debug("Wrote chunk %d (%d bytes) of %s", n - 1, len(data), object_id)

        builder = (
            DocumentBuilder()
            .append_oid("_id", object_id)
            .append_string("filename", name)
            .append_int64("length", length)
            .append_int32("chunkSize", chunk_size)
            .append_utc_datetime("uploadDate", int(self._clock() * 1000))
            .append_string("md5", digest.hexdigest())
        )
        for key, value in extra.items():
            builder.append_value(key, value)
        files_doc = builder.finish()
        self._insert(self.namespaces.files, files_doc, object_id, n)

        logger.info("Uploaded '%s' as %s: %d bytes in %d chunk(s)", name, object_id, length, n)
        return StoredObject.from_document(files_doc, with_extras=True)

    def _find_one(self, filter_doc: bytes, description: str) -> StoredObject:
        with self._reading(self.namespaces.files):
            with StreamingCursor(self._transport.query(self.namespaces.files, filter_doc, limit=1)) as cursor:
                if not cursor.next():
                    raise NotFoundError(f"{description} not found in {self.namespaces.files}")
                doc = cursor.current_raw()
        return StoredObject.from_document(doc, with_extras=True)

    def _open_stream(self, meta: StoredObject, verify_md5: bool) -> ChunkStream:
        sort = DocumentBuilder().append_int32("n", 1).finish()
        with self._reading(self.namespaces.chunks):
            raw = self._transport.query(self.namespaces.chunks, _oid_filter("files_id", meta.id), sort=sort)
        logger.info("Streaming %s: %d bytes in %d chunk(s)", meta.id, meta.length, meta.chunk_count)
        return ChunkStream(meta, StreamingCursor(raw), verify_md5=verify_md5)

    def get(self, name: str, *, verify_md5: bool = True) -> ChunkStream:
        """
        Open the first object stored under name.

        Raises:
            NotFoundError: If no metadata document has that filename
            DecodeError: If the metadata document is malformed
            StreamError: If a query against the store fails
        """
        filter_doc = DocumentBuilder().append_string("filename", name).finish()
        meta = self._find_one(filter_doc, f"file '{name}'")
        return self._open_stream(meta, verify_md5)

    def get_by_id(self, object_id: ObjectId, *, verify_md5: bool = True) -> ChunkStream:
        """Open the object with the given id."""
        meta = self._find_one(_oid_filter("_id", object_id), f"object {object_id}")
        return self._open_stream(meta, verify_md5)

    def list(self, verbose: bool = False) -> Iterator[ListedObject]:
        """
        Stream every metadata document in the files collection.

        Args:
            verbose: Also report unknown keys and their types on each entry

        Yields:
            ListedObject per document; decode failures are reported per entry

        Raises:
            StreamError: If the query or a cursor fetch fails
        """
        with self._reading(self.namespaces.files):
            with StreamingCursor(self._transport.query(self.namespaces.files, EMPTY_DOCUMENT)) as cursor:
                for doc in cursor:
                    try:
                        meta = StoredObject.from_document(doc, with_extras=verbose)
                    except DecodeError as e:
                        logger.warning("Skipping undecodable document #%d in %s: %s",
                                       cursor.position, self.namespaces.files, e)
                        yield ListedObject(document=doc, error=e)
                        continue
                    yield ListedObject(document=doc, meta=meta)

    def delete(self, object_id: ObjectId) -> int:
        """
        Remove an object's metadata document, then its chunks.

        Also accepts the id of an incomplete upload that has chunks but no
        metadata document.

        Returns:
            Number of chunk documents removed

        Raises:
            NotFoundError: If neither metadata nor chunks exist for object_id
            StoreError: If a remove fails
        """
        try:
            files_removed = self._transport.remove(self.namespaces.files, _oid_filter("_id", object_id))
            chunks_removed = self._transport.remove(self.namespaces.chunks, _oid_filter("files_id", object_id))
        except TransportError as e:
            raise StoreError(f"delete of {object_id} failed: {self._server_message(e)}") from e

        if not files_removed and not chunks_removed:
            raise NotFoundError(f"object {object_id} not found in {self.namespaces.files}")
        logger.info("Deleted %s (%d chunk(s))", object_id, chunks_removed)
        return chunks_removed

    def delete_by_name(self, name: str) -> tuple[StoredObject, int]:
        """Delete the first object stored under name; return its metadata and chunks removed."""
        filter_doc = DocumentBuilder().append_string("filename", name).finish()
        meta = self._find_one(filter_doc, f"file '{name}'")
        return meta, self.delete(meta.id)
