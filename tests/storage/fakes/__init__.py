# Fake implementations for testing

from .fake_transport import FakeRawCursor, FakeTransport

__all__ = ["FakeRawCursor", "FakeTransport"]
