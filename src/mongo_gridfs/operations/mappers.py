"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

import typer

from ..errors import GridFSError, IncompleteUploadError

T = TypeVar('T')

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to exit code.

    Every fatal error exits with 1: connection failures, missing input
    files, objects not found, malformed documents, failed writes and short
    chunk streams alike.
    """
    return EXIT_FAILURE


def message_for(exc: BaseException) -> str:
    """Render an exception as the one-line message shown on stderr."""
    if isinstance(exc, OSError) and not isinstance(exc, GridFSError) and exc.filename:
        return f"{exc.strerror or exc}: '{exc.filename}'"
    message = str(exc) or type(exc).__name__
    if isinstance(exc, IncompleteUploadError) and exc.object_id is not None:
        message += f" (remove orphaned chunks with: delete --id {exc.object_id})"
    return message


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function, prints any error to stderr as
    "Error encountered: <message>" and exits non-zero. This centralizes
    error handling so CLI commands don't need individual try/except blocks.

    Raises:
        typer.Exit: With the mapped exit code if func raises
    """
    try:
        return func()
    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        typer.echo(f"Error encountered: {message_for(e)}", err=True)
        raise typer.Exit(code=exit_code_for(e)) from e
