"""
Mongo GridFS CLI

Implements 4 CLI verbs with Operations facade integration:
- get: Download a stored object to a local file
- put: Upload a local file under a name
- list: Print the metadata of every stored object
- delete: Remove an object (by name, or by id for incomplete uploads)

Connection options go before the verb and fall back to GRIDFS_* environment
variables:

    mongo-gridfs -h localhost -d test -c fs put ./data.bin data.bin
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import typer

from .cli_context import CLIContext
from .logging_config import setup_logging
from .operations import Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_delete_summary, print_get_summary, print_listing, print_put_summary
)

app = typer.Typer(
    name="mongo-gridfs",
    help="Store and retrieve files in MongoDB GridFS",
    no_args_is_help=True,
)


def _parse_meta(items: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated --meta key=value options into a mapping.

    Raises:
        ValueError: If an item has no '=' or an empty key
    """
    metadata: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --meta value '{item}', expected key=value")
        metadata[key] = value
    return metadata


def _open(ctx: typer.Context) -> Tuple[CLIContext, Operations]:
    """
    Build the CLI context and operations facade for one command.

    Settings are resolved here rather than in the callback so that
    `<verb> --help` works without any connection settings.
    """
    context = CLIContext.from_env(**ctx.obj)
    ctx.call_on_close(context.close)
    settings = context.settings
    setup_logging(settings.verbose)
    config = OpsConfig(chunk_size=settings.chunk_size, verbose=settings.verbose)
    return context, Operations(config=config, store=context.store)


@app.callback()
def common(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to connect to [env: GRIDFS_HOST]"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default 27017) [env: GRIDFS_PORT]"),
    db: Optional[str] = typer.Option(None, "--db", "-d", help="Database to use [env: GRIDFS_DB]"),
    collection: Optional[str] = typer.Option(None, "--collection", "-c", help="GridFS collection prefix [env: GRIDFS_COLLECTION]"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress and extra metadata"),
    slave_ok: bool = typer.Option(False, "--slave-ok", "-s", help="Allow reads from secondaries"),
    master_sync: bool = typer.Option(False, "--master-sync", "-m", help="Discover and use the replica set primary"),
) -> None:
    """Store and retrieve files in MongoDB GridFS."""
    overrides: Dict[str, Any] = {
        "host": host,
        "port": port,
        "db": db,
        "collection": collection,
        # Absent flags defer to the environment
        "verbose": verbose or None,
        "slave_ok": slave_ok or None,
        "master_sync": master_sync or None,
    }
    ctx.obj = overrides


@app.command()
def get(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="GridFS filename to retrieve"),
    output: str = typer.Argument(..., help="Local file to write"),
) -> None:
    """Download a stored object to a local file."""

    def _get() -> None:
        context, ops = _open(ctx)
        result = ops.get(name, output)
        print_get_summary(result, verbose=context.settings.verbose)

    run_and_exit(_get)


@app.command()
def put(
    ctx: typer.Context,
    input_path: str = typer.Argument(..., metavar="INPUT", help="Local file to upload"),
    name: str = typer.Argument(..., help="GridFS filename to store under"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Chunk size in bytes [env: GRIDFS_CHUNK_SIZE]"),
    meta: Optional[List[str]] = typer.Option(None, "--meta", help="Extra metadata as key=value (repeatable)"),
) -> None:
    """Upload a local file under a name."""

    def _put() -> None:
        metadata = _parse_meta(meta)
        if chunk_size is not None:
            ctx.obj["chunk_size"] = chunk_size
        _, ops = _open(ctx)
        stored = ops.put(input_path, name, metadata=metadata)
        print_put_summary(stored)

    run_and_exit(_put)


@app.command("list")
def list_(ctx: typer.Context) -> None:
    """Print the metadata of every stored object."""

    def _list() -> None:
        context, ops = _open(ctx)
        for entry in ops.list():
            if not entry.ok:
                # A malformed document ends the listing, like the classic tool
                raise entry.error
            print_listing(entry.meta, verbose=context.settings.verbose)

    run_and_exit(_list)


@app.command()
def delete(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="GridFS filename to delete"),
    object_id: Optional[str] = typer.Option(None, "--id", help="Delete by hex object id instead of name"),
) -> None:
    """Remove a stored object and its chunks."""

    def _delete() -> None:
        _, ops = _open(ctx)
        result = ops.delete(name, object_id=object_id)
        print_delete_summary(result)

    run_and_exit(_delete)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
