"""
ik_core.seed
------------
SeedSource contract and two in-process implementations.

The real seed store (mnemonic entry, keychain, encrypted file) lives outside
this package; ik_core only ever calls ``get_seed()`` and never persists the
result.
"""

from __future__ import annotations
from typing import Optional
import threading

from .constants import SEED_LENGTHS
from .crypto import random_bytes
from .errors import InvalidSeed, SeedUnavailable


def generate_seed(length: int = 32) -> bytes:
    if length not in SEED_LENGTHS:
        raise InvalidSeed(length)
    return random_bytes(length)


class SeedSource:
    # Interface
    def get_seed(self) -> bytes: ...


class StaticSeedSource(SeedSource):
    def __init__(self, seed: bytes):
        if len(seed) not in SEED_LENGTHS:
            raise InvalidSeed(len(seed))
        self._seed = bytes(seed)

    def get_seed(self) -> bytes:
        return self._seed

    def __repr__(self) -> str:
        return f"StaticSeedSource(<{len(self._seed)} bytes>)"


class LockableSeedSource(SeedSource):
    """Seed holder that refuses to hand out the seed until unlocked."""

    def __init__(self):
        self._seed: Optional[bytes] = None
        self._lock = threading.Lock()

    def unlock(self, seed: bytes) -> None:
        if len(seed) not in SEED_LENGTHS:
            raise InvalidSeed(len(seed))
        with self._lock:
            self._seed = bytes(seed)

    def lock(self) -> None:
        with self._lock:
            self._seed = None

    @property
    def locked(self) -> bool:
        return self._seed is None

    def get_seed(self) -> bytes:
        seed = self._seed
        if seed is None:
            raise SeedUnavailable("seed store is locked")
        return seed

    def __repr__(self) -> str:
        return f"LockableSeedSource(locked={self.locked})"
