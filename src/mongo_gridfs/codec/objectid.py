"""
12-byte object identifiers.

Layout (all big-endian):

    0..3   seconds since the Unix epoch
    4..6   machine discriminator
    7..8   low 16 bits of the process id
    9..11  per-generator counter

The generator is an explicit object rather than module state; a store holds
one and every id it assigns comes from it.
"""
from __future__ import annotations

import os
import random
import struct
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

__all__ = ["ObjectId", "ObjectIdGenerator", "OID_SIZE", "OID_HEX_SIZE"]

OID_SIZE = 12
OID_HEX_SIZE = 24

_COUNTER_MASK = 0xFFFFFF
_TIMESTAMP = struct.Struct(">I")


@dataclass(frozen=True, order=True)
class ObjectId:
    """Immutable 12-byte identifier."""
    binary: bytes

    def __post_init__(self):
        if not isinstance(self.binary, bytes):
            raise TypeError(f"ObjectId requires bytes, got {type(self.binary).__name__}")
        if len(self.binary) != OID_SIZE:
            raise ValueError(f"ObjectId must be {OID_SIZE} bytes, got {len(self.binary)}")

    @classmethod
    def from_hex(cls, value: str) -> ObjectId:
        """Parse a 24-character hex string (either case)."""
        if len(value) != OID_HEX_SIZE:
            raise ValueError(f"ObjectId hex must be {OID_HEX_SIZE} characters: {value!r}")
        try:
            return cls(bytes.fromhex(value))
        except ValueError as e:
            raise ValueError(f"Invalid ObjectId hex: {value!r}") from e

    def to_hex(self) -> str:
        """Render as exactly 24 lowercase hex characters."""
        return self.binary.hex()

    @property
    def generation_time(self) -> datetime:
        """Timestamp embedded in the first four bytes, as an aware UTC datetime."""
        (seconds,) = _TIMESTAMP.unpack_from(self.binary, 0)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"ObjectId('{self.to_hex()}')"


class ObjectIdGenerator:
    """
    Produces process-unique ObjectIds.

    Args:
        seed: Machine discriminator. 0 picks a random one; any other value is
            used as-is (masked to 24 bits), which makes ids reproducible
            across runs apart from the timestamp and pid.
        clock: Seconds-since-epoch source, injectable for tests.

    The counter increment and the clock read happen under one lock, so ids
    from a single generator strictly increase until the 24-bit counter wraps.
    """

    def __init__(self, seed: int = 0, *, clock: Callable[[], float] = time.time) -> None:
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")

        pid = os.getpid()
        machine_id = seed if seed else random.SystemRandom().getrandbits(24)
        # Fold the high pid bits into the machine id so they are not lost
        machine_id ^= pid >> 16

        self._machine = (machine_id & _COUNTER_MASK).to_bytes(3, "big")
        self._pid = (pid & 0xFFFF).to_bytes(2, "big")
        self._clock = clock
        self._counter = 0
        self._lock = threading.Lock()

    def next(self) -> ObjectId:
        """Return the next identifier."""
        with self._lock:
            seq = self._counter
            self._counter = (self._counter + 1) & _COUNTER_MASK
            seconds = int(self._clock()) & 0xFFFFFFFF

        return ObjectId(
            _TIMESTAMP.pack(seconds) + self._machine + self._pid + seq.to_bytes(3, "big")
        )

    __next__ = next

    def __iter__(self):
        return self
