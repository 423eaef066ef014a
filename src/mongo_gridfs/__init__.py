"""
mongo-gridfs: chunked object storage in the GridFS two-collection layout.
"""
from .codec import ObjectId, ObjectIdGenerator
from .errors import (
    ChecksumMismatch,
    DecodeError,
    GridConnectionError,
    GridFSError,
    IncompleteUploadError,
    NotFoundError,
    StoreError,
    StreamError,
)
from .models import StoredObject
from .storage import ChunkStream, GridStore, ListedObject

__version__ = "0.1.0"

__all__ = [
    "ChecksumMismatch",
    "ChunkStream",
    "DecodeError",
    "GridConnectionError",
    "GridFSError",
    "GridStore",
    "IncompleteUploadError",
    "ListedObject",
    "NotFoundError",
    "ObjectId",
    "ObjectIdGenerator",
    "StoreError",
    "StoredObject",
    "StreamError",
]
