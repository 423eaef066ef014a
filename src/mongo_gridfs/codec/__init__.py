"""
Binary document codec.

Encodes and decodes BSON documents and generates 12-byte object ids.
"""
from .builder import EMPTY_DOCUMENT, DocumentBuilder, datetime_to_millis, encode, encode_mapping
from .cursor import BsonCursor, decode, find_by_key, iter_documents, millis_to_datetime
from .objectid import ObjectId, ObjectIdGenerator
from .types import Binary, BinarySubtype, BsonType

__all__ = [
    "Binary",
    "BinarySubtype",
    "BsonCursor",
    "BsonType",
    "DocumentBuilder",
    "EMPTY_DOCUMENT",
    "ObjectId",
    "ObjectIdGenerator",
    "datetime_to_millis",
    "decode",
    "encode",
    "encode_mapping",
    "find_by_key",
    "iter_documents",
    "millis_to_datetime",
]
