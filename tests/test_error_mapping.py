"""
Tests for error mapping and the CLI command wrapper.
"""
from __future__ import annotations

import pytest
import typer

from mongo_gridfs.codec import ObjectId
from mongo_gridfs.errors import (
    ChecksumMismatch,
    DecodeError,
    GridConnectionError,
    IncompleteUploadError,
    NotFoundError,
    StreamError,
)
from mongo_gridfs.operations import exit_code_for, run_and_exit
from mongo_gridfs.operations.mappers import EXIT_FAILURE, message_for


class TestExitCodes:

    @pytest.mark.parametrize("exc", [
        GridConnectionError("cannot connect"),
        NotFoundError("missing"),
        DecodeError("bad"),
        StreamError("short"),
        ChecksumMismatch("md5"),
        FileNotFoundError(2, "No such file or directory", "in.bin"),
        ValueError("bad option"),
    ])
    def test_every_error_exits_one(self, exc):
        assert exit_code_for(exc) == EXIT_FAILURE == 1


class TestMessages:

    def test_os_error_names_file(self):
        exc = FileNotFoundError(2, "No such file or directory", "in.bin")
        assert message_for(exc) == "No such file or directory: 'in.bin'"

    def test_incomplete_upload_hint(self):
        oid = ObjectId(bytes(12))
        exc = IncompleteUploadError("upload incomplete", object_id=oid, chunks_written=2)
        assert message_for(exc) == f"upload incomplete (remove orphaned chunks with: delete --id {oid.to_hex()})"

    def test_plain_message(self):
        assert message_for(NotFoundError("file 'x' not found")) == "file 'x' not found"

    def test_empty_message_uses_type_name(self):
        assert message_for(RuntimeError()) == "RuntimeError"


class TestRunAndExit:

    def test_returns_result(self):
        assert run_and_exit(lambda: 42) == 42

    def test_maps_errors(self, capsys):
        def fail():
            raise NotFoundError("file 'x' not found in test.fs.files")

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(fail)
        assert exc_info.value.exit_code == 1
        assert capsys.readouterr().err == "Error encountered: file 'x' not found in test.fs.files\n"

    def test_exit_passes_through(self):
        def done():
            raise typer.Exit(code=0)

        with pytest.raises(typer.Exit) as exc_info:
            run_and_exit(done)
        assert exc_info.value.exit_code == 0
