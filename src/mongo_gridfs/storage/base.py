"""
Transport interfaces for mongo-gridfs.

These protocols define the boundary between the chunked object store and the
connection to the backing database, enabling clean dependency injection and
testing with fakes. Documents cross this boundary as finished BSON bytes.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

__all__ = ["RawCursor", "Transport"]


@runtime_checkable
class RawCursor(Protocol):
    """Server-side result set, consumed one raw document at a time."""

    def next_raw(self) -> Optional[bytes]:
        """
        Fetch the next document.

        Returns:
            Finished BSON document bytes, or None when the result set is exhausted

        Raises:
            TransportError: If fetching the next batch fails
        """
        ...

    def close(self) -> None:
        """Release server-side resources held by the cursor."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Protocol for the round trips the store needs."""

    def query(
        self,
        namespace: str,
        filter_doc: bytes,
        *,
        skip: int = 0,
        limit: int = 0,
        sort: Optional[bytes] = None
    ) -> RawCursor:
        """
        Run an equality query.

        Args:
            namespace: Full namespace, e.g. "test.fs.files"
            filter_doc: Finished BSON filter document
            skip: Number of documents to skip
            limit: Maximum documents to return (0=no limit)
            sort: Finished BSON sort document, e.g. {n: 1}

        Returns:
            Cursor over matching documents

        Raises:
            TransportError: If the query fails
        """
        ...

    def insert(self, namespace: str, document: bytes) -> None:
        """
        Insert one finished document and wait for acknowledgement.

        Raises:
            TransportError: If the server rejects the write
        """
        ...

    def remove(self, namespace: str, filter_doc: bytes) -> int:
        """
        Remove every document matching filter_doc.

        Returns:
            Number of documents removed

        Raises:
            TransportError: If the server rejects the delete
        """
        ...

    def last_error(self, db: str) -> Optional[str]:
        """Return the server's message for the last failed operation, if any."""
        ...

    def close(self) -> None:
        """Disconnect."""
        ...
