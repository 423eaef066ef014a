"""
Storage layer: transport protocol, streaming cursor and the GridFS store.

The pymongo transport lives in mongo_gridfs.storage.mongo_transport and is
imported on demand so the store can be used with any Transport.
"""
from .base import RawCursor, Transport
from .cursor import StreamingCursor
from .gridfs_store import ChunkStream, GridStore, ListedObject
from .namespaces import GridNamespaces, build_namespaces

__all__ = [
    "ChunkStream",
    "GridNamespaces",
    "GridStore",
    "ListedObject",
    "RawCursor",
    "StreamingCursor",
    "Transport",
    "build_namespaces",
]
