"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the GridFS store, centralizing
command orchestration and file handling while keeping CLI commands thin and
testable.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Optional

from ..codec import ObjectId
from ..models import StoredObject
from ..settings import DEFAULT_CHUNK_SIZE
from ..storage import ChunkStream, GridStore, ListedObject

__all__ = ["Operations", "OpsConfig", "GetResult", "DeleteResult", "write_stream_atomically"]

logger = logging.getLogger(__name__)


def write_stream_atomically(target_path: Path, stream: ChunkStream) -> int:
    """
    Drain a chunk stream to a file with an atomic rename.

    The bytes go to a temp file (mode 0600) in the target's directory, which
    replaces target_path only after the whole stream has been read and
    verified. On any error the stream is closed and target_path is left
    untouched; a temp file, if one was created, is removed.

    Returns:
        Number of bytes written
    """
    temp_path: Optional[Path] = None
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=".gridfs.tmp.", dir=target_path.parent)
        temp_path = Path(temp_name)
        with os.fdopen(fd, "wb") as out:
            written = stream.write_to(out)
            out.flush()
            os.fsync(out.fileno())
        os.replace(temp_path, target_path)
    except BaseException:
        stream.close()
        if temp_path is not None:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
        raise

    return written


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes policy decisions like chunk size and checksum verification.
    """
    chunk_size: int = DEFAULT_CHUNK_SIZE  # Chunk size for new uploads
    verify_md5: bool = True               # Check md5 after download
    verbose: bool = False                 # Show extra metadata in listings


@dataclass(frozen=True)
class GetResult:
    meta: StoredObject
    output_path: Path
    bytes_written: int


@dataclass(frozen=True)
class DeleteResult:
    object_id: ObjectId
    chunks_removed: int
    meta: Optional[StoredObject] = None


class Operations:
    """
    Application service facade for CLI operations.

    One method per CLI verb. Exceptions bubble up for central mapping in
    operations.mappers.
    """

    def __init__(self, config: OpsConfig, store: GridStore):
        self.cfg = config
        self.store = store

    def get(self, name: str, output_path: str) -> GetResult:
        """
        Download the object stored under name to output_path.

        Raises:
            NotFoundError: If no object has that name
            StreamError: If the chunk stream does not match the metadata or a
                read against the store fails
            OSError: If output_path cannot be written
        """
        logger.info("Trying to find '%s'...", name)
        stream = self.store.get(name, verify_md5=self.cfg.verify_md5)
        target = Path(output_path)
        logger.info("Writing '%s' -> '%s' (%d bytes in %d chunks)",
                    name, target, stream.meta.length, stream.meta.chunk_count)
        written = write_stream_atomically(target, stream)
        return GetResult(meta=stream.meta, output_path=target, bytes_written=written)

    def put(self, input_path: str, name: str, *,
            metadata: Optional[Mapping[str, object]] = None) -> StoredObject:
        """
        Upload input_path under name.

        Raises:
            FileNotFoundError: If input_path does not exist
            IncompleteUploadError: If a write fails part way
        """
        path = Path(input_path)
        logger.info("Opening input file: '%s'...", path)
        with open(path, "rb") as source:
            logger.info("Uploading '%s' -> '%s'...", path, name)
            return self.store.put(name, source, chunk_size=self.cfg.chunk_size, metadata=metadata)

    def list(self) -> Iterator[ListedObject]:
        """Stream every stored object's metadata."""
        return self.store.list(verbose=self.cfg.verbose)

    def delete(self, name: Optional[str] = None, *, object_id: Optional[str] = None) -> DeleteResult:
        """
        Delete by name, or by hex object id (which also clears incomplete uploads).

        Raises:
            ValueError: If neither or both of name and object_id are given
            NotFoundError: If nothing matches
        """
        if (name is None) == (object_id is None):
            raise ValueError("Specify exactly one of a name or --id")

        if object_id is not None:
            oid = ObjectId.from_hex(object_id)
            return DeleteResult(object_id=oid, chunks_removed=self.store.delete(oid))

        meta, removed = self.store.delete_by_name(name)
        return DeleteResult(object_id=meta.id, chunks_removed=removed, meta=meta)
