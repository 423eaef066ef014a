"""
Namespace construction helpers.

Centralizes the logic for building GridFS collection namespaces from a
database name and collection prefix.
"""
from __future__ import annotations

from typing import NamedTuple

__all__ = ["GridNamespaces", "build_namespaces", "split_namespace"]

FILES_SUFFIX = "files"
CHUNKS_SUFFIX = "chunks"


class GridNamespaces(NamedTuple):
    db: str
    files: str
    chunks: str


def build_namespaces(db: str, prefix: str) -> GridNamespaces:
    """
    Build the files/chunks namespace pair.

    Examples:
        >>> build_namespaces("test", "fs")
        GridNamespaces(db='test', files='test.fs.files', chunks='test.fs.chunks')
    """
    if not db:
        raise ValueError("db cannot be empty")
    if not prefix:
        raise ValueError("prefix cannot be empty")

    base = f"{db}.{prefix}"
    return GridNamespaces(db=db, files=f"{base}.{FILES_SUFFIX}", chunks=f"{base}.{CHUNKS_SUFFIX}")


def split_namespace(namespace: str) -> tuple[str, str]:
    """
    Split a full namespace into database and collection names.

    Examples:
        >>> split_namespace("test.fs.chunks")
        ('test', 'fs.chunks')

    Raises:
        ValueError: If namespace has no collection part
    """
    db, sep, collection = namespace.partition(".")
    if not sep or not db or not collection:
        raise ValueError(f"Invalid namespace: {namespace}. Expected <db>.<collection>")
    return db, collection
