"""
ik_core.envelope
----------------
Hybrid multi-recipient envelopes.

The body is sealed once under a fresh 32-byte CEK (XChaCha20-Poly1305). The
CEK is then wrapped separately for each recipient with the raw X25519 shared
secret between a fresh ephemeral key and the recipient's public key. Body
cost is paid once; each extra recipient costs one 48-byte wrap.

Associated data:
- body:  alg
- wrap:  alg || ephemeral_public || to

Every nonce comes from the OS CSPRNG inside ``crypto.aead_seal``.

Raw layout (big-endian), produced by ``Envelope.to_bytes``::

    u8  alg_len   | alg
    24  body_nonce
    u32 ct_len    | body_ct
    u16 n_recipients
    n * ( 32 ephemeral_public | 24 nonce | u16 wrapped_len | wrapped_cek | u8 to_len | to )
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Sequence, Tuple
import struct

from nacl.exceptions import CryptoError

from .constants import CEK_SIZE, ENVELOPE_ALG, FP_TAG_X25519, KEY_SIZE, NONCE_SIZE, WRAPPED_CEK_SIZE
from .crypto import aead_open, aead_seal, random_bytes, x25519_exchange, x25519_generate
from .errors import BodyAuthenticationFailed, InvalidEnvelope, NoMatchingRecipient, UnwrapFailed, WrongKeyType
from .fingerprint import short_tag
from .logger import get_logger

log = get_logger("IK.Envelope")

Resolver = Callable[[str], Optional[bytes]]

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")

MAX_TO_LEN = 255  # u8 length prefix

UNWRAPPED = "unwrapped"
NO_KEY = "no_key"
FAILED = "failed"


@dataclass
class RecipientEntry:
    ephemeral_public: bytes
    nonce: bytes
    wrapped_cek: bytes
    to: str

    def pack(self) -> bytes:
        to = self.to.encode("utf-8")
        if len(to) > MAX_TO_LEN:
            raise InvalidEnvelope(f"recipient label longer than {MAX_TO_LEN} bytes")
        return (
            self.ephemeral_public + self.nonce
            + _U16.pack(len(self.wrapped_cek)) + self.wrapped_cek
            + _U8.pack(len(to)) + to
        )


@dataclass
class Envelope:
    alg: str
    body_nonce: bytes
    body_ct: bytes
    recipients: List[RecipientEntry] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        alg = self.alg.encode("ascii")
        parts = [
            _U8.pack(len(alg)), alg,
            self.body_nonce,
            _U32.pack(len(self.body_ct)), self.body_ct,
            _U16.pack(len(self.recipients)),
        ]
        parts.extend(r.pack() for r in self.recipients)
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        reader = _Reader(data)
        alg = reader.take(reader.u8()).decode("ascii", errors="replace")
        body_nonce = reader.take(NONCE_SIZE)
        body_ct = reader.take(reader.u32())
        recipients = []
        for _ in range(reader.u16()):
            eph = reader.take(KEY_SIZE)
            nonce = reader.take(NONCE_SIZE)
            wrapped = reader.take(reader.u16())
            to = reader.take(reader.u8()).decode("utf-8", errors="replace")
            recipients.append(RecipientEntry(eph, nonce, wrapped, to))
        if reader.remaining:
            raise InvalidEnvelope(f"{reader.remaining} trailing bytes after envelope")
        return cls(alg, body_nonce, body_ct, recipients)


class _Reader:
    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            raise InvalidEnvelope(f"truncated envelope: need {n} bytes at offset {self.pos}, have {self.remaining}")
        out = bytes(self.data[self.pos:self.pos + n])
        self.pos += n
        return out

    def u8(self) -> int:
        return _U8.unpack(self.take(1))[0]

    def u16(self) -> int:
        return _U16.unpack(self.take(2))[0]

    def u32(self) -> int:
        return _U32.unpack(self.take(4))[0]


@dataclass(frozen=True)
class UnwrapAttempt:
    index: int
    to: str
    status: str  # unwrapped | no_key | failed
    cek: Optional[bytes] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == UNWRAPPED


# --------- single-pass body / per-recipient wrap ----------
def _wrap_aad(alg: str, ephemeral_public: bytes, to: str) -> bytes:
    return alg.encode("ascii") + ephemeral_public + to.encode("utf-8")


def seal_body(cek: bytes, plaintext: bytes, alg: str = ENVELOPE_ALG) -> Tuple[bytes, bytes]:
    return aead_seal(cek, plaintext, aad=alg.encode("ascii"))


def wrap_cek(cek: bytes, recipient_public: bytes, to: str, alg: str = ENVELOPE_ALG) -> RecipientEntry:
    eph_sk, eph_pk = x25519_generate()
    shared = x25519_exchange(eph_sk, recipient_public)
    nonce, wrapped = aead_seal(shared, cek, aad=_wrap_aad(alg, eph_pk, to))
    return RecipientEntry(ephemeral_public=eph_pk, nonce=nonce, wrapped_cek=wrapped, to=to)


def unwrap_cek(entry: RecipientEntry, secret: bytes, alg: str = ENVELOPE_ALG) -> Optional[bytes]:
    """CEK for ``entry`` under ``secret``, or None if it does not authenticate."""
    try:
        shared = x25519_exchange(secret, entry.ephemeral_public)
        cek = aead_open(shared, entry.nonce, entry.wrapped_cek, aad=_wrap_aad(alg, entry.ephemeral_public, entry.to))
    except (CryptoError, ValueError):
        return None
    if len(cek) != CEK_SIZE:
        return None
    return cek


class EnvelopeCodec:
    alg = ENVELOPE_ALG

    def encrypt(self, plaintext: bytes, recipients: Sequence[Tuple[bytes, str]]) -> Envelope:
        """Seal ``plaintext`` once and wrap its CEK for each (public_key, short_fingerprint)."""
        if not recipients:
            raise InvalidEnvelope("an envelope needs at least one recipient")
        for i, (public, to) in enumerate(recipients):
            if len(public) != KEY_SIZE:
                raise WrongKeyType(f"recipient {i}: public key must be {KEY_SIZE} bytes, got {len(public)}")
            if short_tag(to) != FP_TAG_X25519:
                raise WrongKeyType(f"recipient {i}: {to!r} is not an X25519 short fingerprint")
            if len(to.encode("utf-8")) > MAX_TO_LEN:
                raise InvalidEnvelope(f"recipient {i}: label longer than {MAX_TO_LEN} bytes")

        cek = random_bytes(CEK_SIZE)
        body_nonce, body_ct = seal_body(cek, plaintext, self.alg)

        entries = []
        for i, (public, to) in enumerate(recipients):
            try:
                entries.append(wrap_cek(cek, public, to, self.alg))
            except ValueError as e:
                raise WrongKeyType(f"recipient {i} ({to}): unusable X25519 public key") from e

        log.debug(f"[SEAL] {len(plaintext)} bytes for {len(entries)} recipients")
        return Envelope(alg=self.alg, body_nonce=body_nonce, body_ct=body_ct, recipients=entries)

    def _check(self, envelope: Envelope) -> None:
        if envelope.alg != self.alg:
            raise InvalidEnvelope(f"unsupported alg {envelope.alg!r}")
        if len(envelope.body_nonce) != NONCE_SIZE:
            raise InvalidEnvelope(f"body nonce must be {NONCE_SIZE} bytes")
        if not envelope.recipients:
            raise InvalidEnvelope("envelope has no recipient entries")

    def _attempts(self, envelope: Envelope, resolve: Resolver) -> Iterator[UnwrapAttempt]:
        for index, entry in enumerate(envelope.recipients):
            secret = resolve(entry.to)
            if secret is None:
                yield UnwrapAttempt(index, entry.to, NO_KEY)
                continue
            if len(entry.nonce) != NONCE_SIZE or len(entry.wrapped_cek) != WRAPPED_CEK_SIZE:
                cek = None
            else:
                cek = unwrap_cek(entry, secret, envelope.alg)
            if cek is None:
                log.warning(f"[UNWRAP] entry {index} to={entry.to} failed authentication")
                yield UnwrapAttempt(index, entry.to, FAILED)
                continue
            yield UnwrapAttempt(index, entry.to, UNWRAPPED, cek)

    def open_entries(self, envelope: Envelope, resolve: Resolver) -> List[UnwrapAttempt]:
        """Per-entry unwrap outcomes; never raises for a single bad entry."""
        self._check(envelope)
        return list(self._attempts(envelope, resolve))

    def decrypt(self, envelope: Envelope, resolve: Resolver) -> bytes:
        """
        Recover the plaintext using whichever entry ``resolve`` holds a key for.

        Entries whose wrap fails are skipped. The first recovered CEK must open
        the body; if it does not, BodyAuthenticationFailed is raised and no
        plaintext is released.
        """
        self._check(envelope)
        failed = []
        for attempt in self._attempts(envelope, resolve):
            if attempt.status == FAILED:
                failed.append(attempt.index)
            if not attempt.ok:
                continue
            try:
                return aead_open(attempt.cek, envelope.body_nonce, envelope.body_ct,
                                 aad=envelope.alg.encode("ascii"))
            except CryptoError:
                log.error(f"[OPEN] body authentication failed (entry {attempt.index})")
                raise BodyAuthenticationFailed(attempt.index) from None
        if failed:
            raise UnwrapFailed(failed)
        raise NoMatchingRecipient(r.to for r in envelope.recipients)


_default = EnvelopeCodec()


def encrypt(plaintext: bytes, recipients: Sequence[Tuple[bytes, str]]) -> Envelope:
    return _default.encrypt(plaintext, recipients)


def decrypt(envelope: Envelope, resolve: Resolver) -> bytes:
    return _default.decrypt(envelope, resolve)
