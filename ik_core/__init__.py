"""
ik_core Package
===============
Hierarchical key derivation and hybrid multi-recipient envelopes.

Provides:
- Canonical derivation paths (``ik:v1:<curve>/<account>/<role>/<index>``)
- Ed25519 hardened HMAC-chain and X25519 HKDF derivation from one seed
- SHA-256 / Base58 fingerprints (full and short, type-tagged)
- Key registry with Inactive/Active/Deprecated/Revoked lifecycle
- XChaCha20-Poly1305 envelopes sealed once for many recipients
"""

from .paths import Curve, DerivationPath, parse, build
from .derivation import Ed25519Deriver, X25519Deriver, KeyPair, derive
from .fingerprint import fingerprint, to_full, to_short
from .seed import SeedSource, StaticSeedSource, LockableSeedSource, generate_seed
from .rotation import KeyState, rotate_seed
from .registry import KeyRegistry, RegisteredKey
from .envelope import Envelope, EnvelopeCodec, RecipientEntry, UnwrapAttempt, encrypt, decrypt
from .errors import (
    IkError, InvalidPath, InvalidSeed, SeedUnavailable, KeyNotFound, FingerprintMismatch,
    FingerprintCollision, InvalidStateTransition, KeyRevoked, WrongKeyType, InvalidEnvelope,
    UnwrapFailed, BodyAuthenticationFailed, NoMatchingRecipient,
)

__version__ = "0.1.0"

__all__ = [
    "Curve", "DerivationPath", "parse", "build",
    "Ed25519Deriver", "X25519Deriver", "KeyPair", "derive",
    "fingerprint", "to_full", "to_short",
    "SeedSource", "StaticSeedSource", "LockableSeedSource", "generate_seed",
    "KeyState", "rotate_seed",
    "KeyRegistry", "RegisteredKey",
    "Envelope", "EnvelopeCodec", "RecipientEntry", "UnwrapAttempt", "encrypt", "decrypt",
    "IkError", "InvalidPath", "InvalidSeed", "SeedUnavailable", "KeyNotFound", "FingerprintMismatch",
    "FingerprintCollision", "InvalidStateTransition", "KeyRevoked", "WrongKeyType", "InvalidEnvelope",
    "UnwrapFailed", "BodyAuthenticationFailed", "NoMatchingRecipient",
]
