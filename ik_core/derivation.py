"""
ik_core.derivation
------------------
Deterministic keypairs from one root seed.

Two unrelated constructions share the seed:

- Ed25519 (identity / signing): hardened HMAC-SHA512 chain,
  ``m / account' / role' / index'`` with roles mapped through ROLE_TABLE_V1.
  The chain output is the 32-byte Ed25519 seed; the signing scalar is the
  usual SHA-512 expansion of it, clamped.
- X25519 (key agreement): one HKDF-SHA512 call with the canonical path string
  as ``info``, clamped as an X25519 scalar.

Both are total for a valid seed: no step can fail mid-derivation.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import hashlib
import struct

from .constants import (
    ED25519_MASTER_KEY, HARDENED_OFFSET, ROLE_TABLE_V1, SEED_LENGTHS,
    X25519_SALT_LABEL, KEY_SIZE, FP_TAG_ED25519, FP_TAG_X25519,
)
from .crypto import ed25519_public_from_seed, ed25519_sign, hmac_sha512, hkdf_sha512, x25519_public_from_secret
from .errors import InvalidPath, InvalidSeed, WrongKeyType
from .fingerprint import fingerprint, to_full, to_short
from .paths import Curve, DerivationPath, build, coerce


@dataclass(frozen=True)
class KeyPair:
    path: DerivationPath
    secret: bytes = field(repr=False)
    public: bytes

    @property
    def curve(self) -> Curve:
        return self.path.curve

    @property
    def tag(self) -> str:
        return FP_TAG_ED25519 if self.curve is Curve.ED25519 else FP_TAG_X25519

    @property
    def fingerprint(self) -> bytes:
        return fingerprint(self.public)

    @property
    def full_fingerprint(self) -> str:
        return to_full(self.fingerprint)

    @property
    def short_fingerprint(self) -> str:
        return to_short(self.fingerprint, self.tag)

    def sign(self, data: bytes) -> bytes:
        if self.curve is not Curve.ED25519:
            raise WrongKeyType(f"{build(self.path)} is a key-agreement key and cannot sign")
        return ed25519_sign(self.secret, data)


# --------- Ed25519 hardened chain ----------
def _split(i64: bytes):
    return i64[:32], i64[32:]


def _ser32(i: int) -> bytes:
    return struct.pack(">I", i)


def role_index(role: str) -> int:
    try:
        return ROLE_TABLE_V1[role]
    except KeyError:
        raise InvalidPath(role, "role not in Ed25519 role table v1") from None


class Ed25519Deriver:
    """Hardened-only hierarchical derivation for the signing branch."""

    @staticmethod
    def master(seed: bytes):
        if len(seed) not in SEED_LENGTHS:
            raise InvalidSeed(len(seed))
        return _split(hmac_sha512(ED25519_MASTER_KEY, seed))

    @staticmethod
    def child(k: bytes, c: bytes, i: int):
        # hardened: 0x00 || k || ser32(i + 2^31), keyed by the parent chain code
        data = b"\x00" + k + _ser32(i + HARDENED_OFFSET)
        return _split(hmac_sha512(c, data))

    @staticmethod
    def segments(path: DerivationPath):
        return [path.account, role_index(path.role), path.index]

    def derive(self, seed: bytes, path) -> KeyPair:
        path = coerce(path)
        if path.curve is not Curve.ED25519:
            raise WrongKeyType(f"{build(path)} is not an Ed25519 path")
        segments = self.segments(path)
        k, c = self.master(seed)
        for i in segments:
            k, c = self.child(k, c, i)
        return KeyPair(path=path, secret=k, public=ed25519_public_from_seed(k))


def clamp(raw: bytes) -> bytes:
    """Curve25519 scalar clamping, shared by both curves."""
    s = bytearray(raw)
    s[0] &= 248
    s[31] &= 127
    s[31] |= 64
    return bytes(s)


def ed25519_scalar(secret: bytes) -> bytes:
    """Clamped signing scalar that Ed25519 key generation expands ``secret`` into."""
    return clamp(hashlib.sha512(secret).digest()[:32])


# --------- X25519 flat HKDF ----------
X25519_SALT = hashlib.sha256(X25519_SALT_LABEL).digest()


class X25519Deriver:
    """Single HKDF call per key; the whole path string is the info label."""

    def derive(self, seed: bytes, path) -> KeyPair:
        path = coerce(path)
        if path.curve is not Curve.X25519:
            raise WrongKeyType(f"{build(path)} is not an X25519 path")
        if not seed:
            raise InvalidSeed(0, "a non-empty seed")
        okm = hkdf_sha512(seed, X25519_SALT, build(path).encode("utf-8"), KEY_SIZE)
        sk = clamp(okm)
        return KeyPair(path=path, secret=sk, public=x25519_public_from_secret(sk))


_ED = Ed25519Deriver()
_X = X25519Deriver()


def derive(seed: bytes, path) -> KeyPair:
    """Derive the keypair for ``path``, dispatching on its curve."""
    path = coerce(path)
    if path.curve is Curve.ED25519:
        return _ED.derive(seed, path)
    return _X.derive(seed, path)
