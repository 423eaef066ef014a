"""
Streaming cursor adapter.

Wraps a transport RawCursor so the store can step through large result sets
holding only the current document, and guarantees the server cursor is
released exactly once.
"""
from __future__ import annotations

import logging
from typing import Iterator, Optional

from ..codec import BsonCursor
from ..errors import StreamError
from .base import RawCursor

__all__ = ["StreamingCursor"]

logger = logging.getLogger(__name__)


class StreamingCursor:
    """
    Forward-only view over a server result set.

    Use as a context manager so close() runs on every exit path:

        with StreamingCursor(transport.query(ns, flt)) as cursor:
            while cursor.next():
                handle(cursor.current_raw())
    """

    def __init__(self, raw: RawCursor) -> None:
        self._raw = raw
        self._current: Optional[bytes] = None
        self._exhausted = False
        self._closed = False
        self.position = -1

    def next(self) -> bool:
        """Advance; True if a new document is available."""
        if self._closed:
            raise StreamError("cursor is closed")
        if self._exhausted:
            return False

        doc = self._raw.next_raw()
        if doc is None:
            self._exhausted = True
            self._current = None
            return False

        self._current = doc
        self.position += 1
        return True

    def current_raw(self) -> bytes:
        """Return the current document's bytes."""
        if self._current is None:
            raise StreamError("cursor is not positioned on a document")
        return self._current

    def current(self) -> BsonCursor:
        """Return a field cursor over the current document."""
        return BsonCursor(self.current_raw())

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the server cursor. Further calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        self._current = None
        logger.debug("Closing cursor after %d document(s)", self.position + 1)
        self._raw.close()

    def __iter__(self) -> Iterator[bytes]:
        while self.next():
            yield self.current_raw()

    def __enter__(self) -> StreamingCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
