from typing import Any, Dict
from ik_core.storage.models import KeyRecord
from ik_core.storage.provider import StorageProvider
from ik_core.utils import now_ts


class InMemoryStorage(StorageProvider):
    def __init__(self):
        self.keys = {}
        self.audit = []

    def upsert_key(self, rec: KeyRecord):
        self.keys[rec.path] = KeyRecord(**rec.to_dict())

    def get_key(self, path: str):
        return self.keys.get(path)

    def fetch_by_fingerprint(self, fingerprint: str):
        return next((rec for rec in self.keys.values() if rec.fingerprint == fingerprint), None)

    def list_keys(self):
        return list(self.keys.values())

    # audit
    def log_event(self, event_type: str, payload: Dict[str, Any]):
        self.audit.append({"ts": now_ts(), "event_type": event_type, "payload": dict(payload)})

    def list_events(self):
        return list(self.audit)

    def close(self):
        pass
