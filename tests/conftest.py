"""Root pytest configuration for mongo-gridfs tests."""
import pytest

from mongo_gridfs.codec import ObjectIdGenerator
from mongo_gridfs.settings import Settings
from mongo_gridfs.storage import GridStore
from tests.storage.fakes import FakeTransport

FIXED_NOW = 1_700_000_000.0


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires a running mongod)"
    )
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow (may take significant time)"
    )


# Set up test environment variables
@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Automatically set up test environment variables."""
    for name in ("GRIDFS_PORT", "GRIDFS_VERBOSE", "GRIDFS_SLAVE_OK", "GRIDFS_MASTER_SYNC",
                 "GRIDFS_CHUNK_SIZE", "GRIDFS_CONNECT_TIMEOUT", "GRIDFS_CONNECT_RETRY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GRIDFS_HOST", "localhost")
    monkeypatch.setenv("GRIDFS_DB", "test")
    monkeypatch.setenv("GRIDFS_COLLECTION", "fs")


# Standardized test fixtures
@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(host="localhost", db="test", collection="fs")


@pytest.fixture
def transport():
    """Standard in-memory transport."""
    return FakeTransport()


@pytest.fixture
def clock():
    """Frozen clock so upload dates and object id timestamps are predictable."""
    return lambda: FIXED_NOW


@pytest.fixture
def store(transport, clock):
    """Store over the fake transport with a seeded id generator."""
    generator = ObjectIdGenerator(seed=0x123456, clock=clock)
    return GridStore(transport, "test", "fs", generator=generator, clock=clock)
