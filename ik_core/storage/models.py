# ik_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass
class KeyRecord:
    """
    Persisted bookkeeping for one registered derivation path.

    Holds structure only: the canonical path string, the full Base58
    fingerprint, the lifecycle state and the registration timestamp. Leaking
    a KeyRecord leaks no key material.
    """
    path: str
    fingerprint: str
    state: str = "inactive"   # inactive | active | deprecated | revoked
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyRecord":
        return cls(
            path=data["path"],
            fingerprint=data["fingerprint"],
            state=data.get("state", "inactive"),
            created_at=data.get("created_at", ""),
        )
