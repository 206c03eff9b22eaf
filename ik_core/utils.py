"""
ik_core.utils
-------------
Small helpers for timestamps, hashing, canonical JSON and env-driven config.
"""

from __future__ import annotations
import hashlib, json, os, time
from typing import Any, Dict


def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def canonical_json(obj: Dict[str, Any]) -> str:
    # Deterministic, minimal JSON for audit payloads
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
