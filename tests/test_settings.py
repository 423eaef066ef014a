"""
Tests for settings module.

Tests settings validation and environment variable loading with CLI overrides.
"""
from __future__ import annotations

import pytest

from mongo_gridfs.settings import DEFAULT_CHUNK_SIZE, Settings, create_settings_from_env


class TestSettings:
    """Test Settings dataclass validation."""

    def test_minimal_valid_settings(self):
        """Test creating settings with minimal required values."""
        settings = Settings(host="localhost", db="test", collection="fs")
        assert settings.port == 27017
        assert settings.verbose is False
        assert settings.slave_ok is False
        assert settings.master_sync is False
        assert settings.chunk_size == DEFAULT_CHUNK_SIZE == 262144
        assert settings.connect_retry == 0
        assert settings.namespace == "test.fs"

    @pytest.mark.parametrize("host", ["db-1.example.com", "10.0.0.5", "[::1]"])
    def test_valid_hosts(self, host):
        assert Settings(host=host, db="test", collection="fs").host == host

    @pytest.mark.parametrize("host", ["", "bad host", "mongodb://localhost"])
    def test_invalid_hosts(self, host):
        with pytest.raises(ValueError):
            Settings(host=host, db="test", collection="fs")

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_invalid_port(self, port):
        with pytest.raises(ValueError, match="port"):
            Settings(host="localhost", db="test", collection="fs", port=port)

    @pytest.mark.parametrize("db", ["", "a.b", "a b", "a$b", "a/b"])
    def test_invalid_db(self, db):
        with pytest.raises(ValueError):
            Settings(host="localhost", db=db, collection="fs")

    @pytest.mark.parametrize("collection", ["", ".fs", "fs.", "f$s"])
    def test_invalid_collection(self, collection):
        with pytest.raises(ValueError):
            Settings(host="localhost", db="test", collection=collection)

    def test_dotted_collection_prefix_allowed(self):
        assert Settings(host="localhost", db="test", collection="images.v2").namespace == "test.images.v2"

    @pytest.mark.parametrize("chunk_size", [0, -5, 16 * 1024 * 1024])
    def test_invalid_chunk_size(self, chunk_size):
        with pytest.raises(ValueError, match="chunk_size"):
            Settings(host="localhost", db="test", collection="fs", chunk_size=chunk_size)

    def test_invalid_timeouts(self):
        with pytest.raises(ValueError, match="connect_timeout_s"):
            Settings(host="localhost", db="test", collection="fs", connect_timeout_s=0)
        with pytest.raises(ValueError, match="connect_retry"):
            Settings(host="localhost", db="test", collection="fs", connect_retry=-1)

    def test_frozen(self, settings):
        with pytest.raises(AttributeError):
            settings.port = 1


class TestCreateSettingsFromEnv:
    """Test environment loading and override precedence."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GRIDFS_PORT", "27018")
        monkeypatch.setenv("GRIDFS_VERBOSE", "true")
        monkeypatch.setenv("GRIDFS_SLAVE_OK", "1")
        monkeypatch.setenv("GRIDFS_CHUNK_SIZE", "1024")
        monkeypatch.setenv("GRIDFS_CONNECT_TIMEOUT", "2.5")
        monkeypatch.setenv("GRIDFS_CONNECT_RETRY", "3")

        settings = create_settings_from_env()
        assert settings.host == "localhost"
        assert settings.db == "test"
        assert settings.collection == "fs"
        assert settings.port == 27018
        assert settings.verbose is True
        assert settings.slave_ok is True
        assert settings.master_sync is False
        assert settings.chunk_size == 1024
        assert settings.connect_timeout_s == 2.5
        assert settings.connect_retry == 3

    def test_overrides_take_precedence(self):
        settings = create_settings_from_env(host="db.example.com", port=28000, collection="media")
        assert settings.host == "db.example.com"
        assert settings.port == 28000
        assert settings.collection == "media"
        assert settings.db == "test"

    def test_none_overrides_ignored(self):
        settings = create_settings_from_env(host=None, verbose=None)
        assert settings.host == "localhost"
        assert settings.verbose is False

    @pytest.mark.parametrize("name,flag", [
        ("GRIDFS_HOST", "--host"),
        ("GRIDFS_DB", "--db"),
        ("GRIDFS_COLLECTION", "--collection"),
    ])
    def test_missing_required(self, monkeypatch, name, flag):
        monkeypatch.delenv(name)
        with pytest.raises(ValueError, match=f"{name} environment variable or {flag} is required"):
            create_settings_from_env()

    def test_fresh_instance_each_call(self):
        assert create_settings_from_env() is not create_settings_from_env()
