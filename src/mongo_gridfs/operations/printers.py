"""
Human-readable output formatting.

Centralizes all CLI output formatting so the commands stay thin. Output
lines follow the format of the classic GridFS utility, so existing scripts
that parse them keep working.
"""
from __future__ import annotations

from typing import List

import typer

from ..models import ExtraField, StoredObject
from .facade import DeleteResult, GetResult


def format_listing(meta: StoredObject) -> str:
    """
    Format one metadata document as a listing line.

    Example:
        { _id: ObjectID("..."), length: 1000000, chunkSize: 262144, uploadDate: 1700000000000, md5: "...", filename: "a.txt" }
    """
    line = (
        f'{{ _id: ObjectID("{meta.id.to_hex()}"), length: {meta.length}, '
        f'chunkSize: {meta.chunk_size}, uploadDate: {meta.upload_date}, md5: "{meta.md5}"'
    )
    if meta.filename is not None:
        line += f', filename: "{meta.filename}"'
    return line + " }"


def format_extra_fields(extras: List[ExtraField]) -> str:
    """Format the verbose extra-metadata line."""
    body = "".join(f"{field.key} ({field.type_name}), " for field in extras)
    return f"\tExtra metadata: [ {body}]"


def print_listing(meta: StoredObject, verbose: bool = False) -> None:
    """
    Print one stored object.

    Args:
        meta: Decoded metadata
        verbose: Also print the names and types of extra metadata fields
    """
    typer.echo(format_listing(meta))
    if verbose:
        typer.echo(format_extra_fields(meta.extra_fields))


def print_put_summary(meta: StoredObject) -> None:
    typer.echo(f"Uploaded file: {meta.filename} (_id: {meta.id.to_hex()}; md5 = {meta.md5})")


def print_get_summary(result: GetResult, verbose: bool = False) -> None:
    """Print download summary (verbose only; plain get is silent on success)."""
    if verbose:
        typer.echo(
            f"Wrote {result.bytes_written} bytes in {result.meta.chunk_count} chunk(s) to {result.output_path}",
            err=True
        )


def print_delete_summary(result: DeleteResult) -> None:
    label = f"{result.meta.filename} " if result.meta is not None and result.meta.filename else ""
    typer.echo(f"Deleted file: {label}(_id: {result.object_id.to_hex()}; {result.chunks_removed} chunk(s))")
