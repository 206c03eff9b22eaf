# ik_core/storage/provider.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .models import KeyRecord


class StorageProvider:
    # Interface
    def upsert_key(self, rec: KeyRecord) -> None: ...
    def get_key(self, path: str) -> Optional[KeyRecord]: ...
    def list_keys(self) -> List[KeyRecord]: ...
    def fetch_by_fingerprint(self, fingerprint: str) -> Optional[KeyRecord]: ...
    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None: ...
    def list_events(self) -> List[Dict[str, Any]]: ...
    def close(self) -> None: ...
