# ik_core/constants.py
"""
Compatibility-critical constants.

Everything in this module feeds key derivation or the envelope layout.
Changing any value invalidates keys or envelopes produced under the old one.
"""

PATH_PREFIX = "ik:v1:"

CURVE_ED25519 = "ed25519"
CURVE_X25519 = "x25519"

# short fingerprint tags, per curve
FP_TAG_ED25519 = "ed1"
FP_TAG_X25519 = "x1"
SHORT_FP_BYTES = 10

# Ed25519 hardened chain
ED25519_MASTER_KEY = b"ed25519 seed"
HARDENED_OFFSET = 0x80000000
MAX_PATH_INT = HARDENED_OFFSET - 1

# Role name -> hardened integer, version 1. Append only.
ROLE_TABLE_V1 = {
    "identity": 0,
    "sign": 1,
    "auth": 2,
    "device": 3,
    "attest": 4,
}

# X25519 HKDF salt label; the salt itself is SHA-256 of this string
X25519_SALT_LABEL = b"ik:x25519:root"

SEED_LENGTHS = (32, 64)
KEY_SIZE = 32

# Envelope
ENVELOPE_ALG = "ik-x25519-xchacha20poly1305-v1"
NONCE_SIZE = 24
TAG_SIZE = 16
CEK_SIZE = 32
WRAPPED_CEK_SIZE = CEK_SIZE + TAG_SIZE
