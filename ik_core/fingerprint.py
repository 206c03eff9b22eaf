"""
ik_core.fingerprint
-------------------
SHA-256 fingerprints of public keys and their two display encodings:

- full:  Base58 of all 32 digest bytes
- short: ``<tag>-`` + Base58 of the first 10 digest bytes (``ed1`` / ``x1``)

The short form is a lookup aid only. Anything resolved through it must be
re-checked against the full digest.
"""

from __future__ import annotations
import base58

from .constants import FP_TAG_ED25519, FP_TAG_X25519, SHORT_FP_BYTES
from .utils import sha256

TAGS = (FP_TAG_ED25519, FP_TAG_X25519)


def fingerprint(public_key: bytes) -> bytes:
    return sha256(public_key)


def to_full(fp: bytes) -> str:
    return base58.b58encode(fp).decode("ascii")


def from_full(s: str) -> bytes:
    """Inverse of ``to_full``. Raises ValueError on anything but a 32-byte digest."""
    raw = base58.b58decode(s)
    if len(raw) != 32:
        raise ValueError(f"full fingerprint must decode to 32 bytes, got {len(raw)}")
    return raw


def to_short(fp: bytes, tag: str) -> str:
    if tag not in TAGS:
        raise ValueError(f"unknown fingerprint tag {tag!r}")
    return f"{tag}-" + base58.b58encode(fp[:SHORT_FP_BYTES]).decode("ascii")


def short_bytes(short: str) -> bytes:
    """Digest prefix carried by a short fingerprint."""
    _, _, body = short.partition("-")
    return base58.b58decode(body)


def short_tag(short: str) -> str:
    tag, sep, _ = short.partition("-")
    return tag if sep else ""


def is_short(s: str) -> bool:
    return short_tag(s) in TAGS
