"""
ik_core.crypto
--------------
Thin wrappers over the cryptographic primitives used by ik_core:

- HMAC-SHA512 and HKDF-SHA512 (RFC 5869) for key derivation
- Ed25519: public key from seed, sign/verify
- X25519: ephemeral generation, public key from scalar, ECDH
- XChaCha20-Poly1305 (IETF) AEAD with 24-byte random nonces

Every nonce is drawn from the OS CSPRNG inside ``aead_seal``; callers cannot
supply one.
"""

from __future__ import annotations
from typing import Optional, Tuple
import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from nacl.bindings import (
    crypto_aead_xchacha20poly1305_ietf_decrypt,
    crypto_aead_xchacha20poly1305_ietf_encrypt,
)

from .constants import NONCE_SIZE


def random_bytes(n: int) -> bytes:
    return os.urandom(n)


# --------- KDF ----------
def hmac_sha512(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA512())
    h.update(data)
    return h.finalize()


def hkdf_sha512(ikm: bytes, salt: bytes, info: bytes, length: int = 32) -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA512(), length=length, salt=salt, info=info)
    return hkdf.derive(ikm)


# --------- Ed25519 (sign/verify) ----------
def ed25519_public_from_seed(seed32: bytes) -> bytes:
    sk = ed25519.Ed25519PrivateKey.from_private_bytes(seed32)
    return sk.public_key().public_bytes_raw()


def ed25519_sign(priv_raw: bytes, data: bytes) -> bytes:
    sk = ed25519.Ed25519PrivateKey.from_private_bytes(priv_raw)
    return sk.sign(data)


def ed25519_verify(pub_raw: bytes, sig: bytes, data: bytes) -> bool:
    try:
        ed25519.Ed25519PublicKey.from_public_bytes(pub_raw).verify(sig, data)
        return True
    except (InvalidSignature, ValueError):
        return False


# --------- X25519 (key agreement) ----------
def x25519_generate() -> Tuple[bytes, bytes]:
    sk = x25519.X25519PrivateKey.generate()
    pk = sk.public_key()
    return sk.private_bytes_raw(), pk.public_bytes_raw()


def x25519_public_from_secret(priv_raw: bytes) -> bytes:
    sk = x25519.X25519PrivateKey.from_private_bytes(priv_raw)
    return sk.public_key().public_bytes_raw()


def x25519_exchange(priv_raw: bytes, peer_pub: bytes) -> bytes:
    """Raw ECDH output. Raises ValueError for low-order peer points."""
    sk = x25519.X25519PrivateKey.from_private_bytes(priv_raw)
    return sk.exchange(x25519.X25519PublicKey.from_public_bytes(peer_pub))


# --------- XChaCha20-Poly1305 ----------
def aead_seal(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes]:
    nonce = random_bytes(NONCE_SIZE)
    ct = crypto_aead_xchacha20poly1305_ietf_encrypt(plaintext, aad, nonce, key)
    return nonce, ct


def aead_open(key: bytes, nonce: bytes, ciphertext: bytes, aad: Optional[bytes] = None) -> bytes:
    """Raises ``nacl.exceptions.CryptoError`` on authentication failure."""
    return crypto_aead_xchacha20poly1305_ietf_decrypt(ciphertext, aad, nonce, key)
