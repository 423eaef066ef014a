"""
pymongo-backed Transport.

Documents cross this boundary as the exact bytes the codec produced: inserts
wrap them in RawBSONDocument and queries read raw reply batches, which are
split back into documents without decoding them through pymongo.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, Optional

from bson.raw_bson import RawBSONDocument
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..codec import decode, iter_documents
from ..errors import GridConnectionError, TransportError
from ..settings import Settings
from .base import RawCursor, Transport
from .namespaces import split_namespace

__all__ = ["MongoRawCursor", "MongoTransport", "connect"]

logger = logging.getLogger(__name__)


def _error_message(exc: PyMongoError) -> str:
    if isinstance(exc, OperationFailure) and exc.details:
        return exc.details.get("errmsg") or str(exc)
    return str(exc)


class MongoRawCursor(RawCursor):
    """
    RawCursor over pymongo's raw batch cursor.

    Holds at most one server batch; documents are handed out one at a time.
    """

    def __init__(self, batches, on_error: Callable[[PyMongoError], str]) -> None:
        self._batches = batches
        self._on_error = on_error
        self._pending: Iterator[bytes] = iter(())

    def next_raw(self) -> Optional[bytes]:
        while True:
            doc = next(self._pending, None)
            if doc is not None:
                return doc
            try:
                batch = next(self._batches)
            except StopIteration:
                return None
            except PyMongoError as e:
                raise TransportError(f"cursor fetch failed: {self._on_error(e)}") from e
            self._pending = iter_documents(batch)

    def close(self) -> None:
        self._batches.close()


class MongoTransport(Transport):
    """
    Transport over a connected MongoClient.

    Server error messages are remembered per database so last_error() can
    report them after a failed write.
    """

    def __init__(self, client: MongoClient) -> None:
        self._client = client
        self._last_errors: Dict[str, str] = {}

    def _collection(self, namespace: str):
        db, collection = split_namespace(namespace)
        return self._client[db][collection]

    def _record(self, namespace: str, exc: PyMongoError) -> str:
        message = _error_message(exc)
        db, _ = split_namespace(namespace)
        self._last_errors[db] = message
        logger.debug("Server error on %s: %s", namespace, message)
        return message

    def query(
        self,
        namespace: str,
        filter_doc: bytes,
        *,
        skip: int = 0,
        limit: int = 0,
        sort: Optional[bytes] = None
    ) -> MongoRawCursor:
        kwargs = {}
        if sort is not None:
            kwargs["sort"] = list(decode(sort).items())

        try:
            batches = self._collection(namespace).find_raw_batches(
                RawBSONDocument(filter_doc), skip=skip, limit=limit, **kwargs
            )
        except PyMongoError as e:
            raise TransportError(f"query on {namespace} failed: {self._record(namespace, e)}") from e

        return MongoRawCursor(batches, lambda exc: self._record(namespace, exc))

    def insert(self, namespace: str, document: bytes) -> None:
        try:
            self._collection(namespace).insert_one(RawBSONDocument(document))
        except PyMongoError as e:
            raise TransportError(f"insert into {namespace} failed: {self._record(namespace, e)}") from e

    def remove(self, namespace: str, filter_doc: bytes) -> int:
        try:
            result = self._collection(namespace).delete_many(RawBSONDocument(filter_doc))
        except PyMongoError as e:
            raise TransportError(f"remove from {namespace} failed: {self._record(namespace, e)}") from e
        return result.deleted_count

    def last_error(self, db: str) -> Optional[str]:
        return self._last_errors.get(db)

    def close(self) -> None:
        self._client.close()


def connect(settings: Settings, *, client_factory: Callable[..., MongoClient] = MongoClient) -> MongoTransport:
    """
    Connect to the server described by settings.

    slave_ok permits a direct connection to a secondary; master_sync discovers
    the replica set and routes everything to the primary. The initial ping is
    retried settings.connect_retry times with exponential backoff.

    Raises:
        GridConnectionError: If the server cannot be reached
    """
    logger.info("Connecting to %s:%d/%s...", settings.host, settings.port, settings.namespace)

    read_preference = "secondaryPreferred" if settings.slave_ok and not settings.master_sync else "primary"
    timeout_ms = int(settings.connect_timeout_s * 1000)
    client = client_factory(
        host=settings.host,
        port=settings.port,
        directConnection=not settings.master_sync,
        readPreference=read_preference,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
    )

    if settings.master_sync:
        logger.info("Syncing to master...")

    try:
        for attempt in Retrying(
            stop=stop_after_attempt(settings.connect_retry + 1),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(ConnectionFailure),
            reraise=True
        ):
            with attempt:
                client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        raise GridConnectionError(
            f"cannot connect to {settings.host}:{settings.port}: {_error_message(e)}"
        ) from e

    return MongoTransport(client)
