# ik_core/errors.py
from __future__ import annotations
from typing import Optional


class IkError(Exception):
    """Base class for ik_core errors. Never carries secret material."""


class InvalidPath(IkError):
    def __init__(self, path: str, reason: str = "malformed derivation path"):
        super().__init__(f"{reason}: {path!r}")
        self.path = path
        self.reason = reason


class InvalidSeed(IkError):
    def __init__(self, length: int, expected: str = "32 or 64 bytes"):
        super().__init__(f"invalid seed length {length}, expected {expected}")
        self.length = length


class SeedUnavailable(IkError):
    pass


class KeyNotFound(IkError):
    def __init__(self, fingerprint: Optional[str] = None, path: Optional[str] = None, reason: str = "no registered key"):
        target = path or fingerprint
        super().__init__(f"{reason}: {target}")
        self.fingerprint = fingerprint
        self.path = path


class FingerprintMismatch(KeyNotFound):
    """Re-derived public key does not hash to the registered fingerprint."""

    def __init__(self, fingerprint: str, path: str):
        super().__init__(fingerprint=fingerprint, path=path,
                         reason="re-derived key does not match registered fingerprint")


class FingerprintCollision(IkError):
    def __init__(self, short: str, paths):
        self.short = short
        self.paths = list(paths)
        super().__init__(f"short fingerprint {short} matches {len(self.paths)} keys: {', '.join(self.paths)}")


class InvalidStateTransition(IkError):
    def __init__(self, path: str, current: str, target: str):
        super().__init__(f"{path}: cannot move from {current} to {target}")
        self.path = path
        self.current = current
        self.target = target


class KeyRevoked(IkError):
    def __init__(self, path: str, fingerprint: str):
        super().__init__(f"key {fingerprint} ({path}) is revoked")
        self.path = path
        self.fingerprint = fingerprint


class WrongKeyType(IkError):
    pass


# --------- Envelope ----------
class InvalidEnvelope(IkError):
    pass


class UnwrapFailed(IkError):
    """CEK unwrap failed for the listed recipient entries."""

    def __init__(self, indexes):
        self.indexes = list(indexes)
        super().__init__(f"CEK unwrap failed for recipient entries {self.indexes}")


class BodyAuthenticationFailed(IkError):
    def __init__(self, index: int):
        super().__init__(f"body authentication failed (CEK from recipient entry {index})")
        self.index = index


class NoMatchingRecipient(IkError):
    def __init__(self, recipients):
        self.recipients = list(recipients)
        super().__init__(f"no held key for any of {len(self.recipients)} recipient entries")
