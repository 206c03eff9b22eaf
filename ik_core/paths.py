"""
ik_core.paths
-------------
Canonical derivation paths: ``ik:v1:<curve>/<account>/<role>/<index>``.

The textual form is itself key material for the X25519 branch (it is the HKDF
info label), so there is exactly one accepted spelling per path: lowercase
curve, decimal integers without leading zeros, ASCII word role.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
import re

from .constants import PATH_PREFIX, CURVE_ED25519, CURVE_X25519, MAX_PATH_INT
from .errors import InvalidPath


class Curve(str, Enum):
    ED25519 = CURVE_ED25519
    X25519 = CURVE_X25519


_UINT = r"(0|[1-9][0-9]*)"
_PATH_RE = re.compile(
    re.escape(PATH_PREFIX)
    + r"(ed25519|x25519)/" + _UINT + r"/([A-Za-z0-9_]+)/" + _UINT
)
_ROLE_RE = re.compile(r"[A-Za-z0-9_]+")


@dataclass(frozen=True)
class DerivationPath:
    curve: Curve
    account: int
    role: str
    index: int

    def __post_init__(self):
        # coerce "ed25519" -> Curve.ED25519 for callers passing plain strings
        try:
            object.__setattr__(self, "curve", Curve(self.curve))
        except ValueError:
            raise InvalidPath(str(self.curve), "unknown curve") from None
        for name in ("account", "index"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_PATH_INT:
                raise InvalidPath(f"{name}={value!r}", f"{name} out of range 0..{MAX_PATH_INT}")
        if not isinstance(self.role, str) or not _ROLE_RE.fullmatch(self.role):
            raise InvalidPath(f"role={self.role!r}", "role must be a non-empty ASCII word")

    def __str__(self) -> str:
        return build(self)

    def with_index(self, index: int) -> "DerivationPath":
        return replace(self, index=index)

    @property
    def lineage(self):
        """(curve, account, role): the slot that rotation advances."""
        return (self.curve, self.account, self.role)


def parse(s: str) -> DerivationPath:
    if not isinstance(s, str):
        raise InvalidPath(repr(s), "path must be a string")
    m = _PATH_RE.fullmatch(s)
    if not m:
        raise InvalidPath(s)
    curve, account, role, index = m.groups()
    if int(account) > MAX_PATH_INT or int(index) > MAX_PATH_INT:
        raise InvalidPath(s, f"path integer exceeds {MAX_PATH_INT}")
    return DerivationPath(Curve(curve), int(account), role, int(index))


def build(path: DerivationPath) -> str:
    return f"{PATH_PREFIX}{path.curve.value}/{path.account}/{path.role}/{path.index}"


def coerce(path) -> DerivationPath:
    """Accept either a DerivationPath or its canonical string."""
    if isinstance(path, DerivationPath):
        return path
    return parse(path)
