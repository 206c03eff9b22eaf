from __future__ import annotations
from typing import Optional, Dict, Any, List
import json, sqlite3, os
from ik_core.storage.provider import StorageProvider
from ik_core.storage.models import KeyRecord


class SQLiteStorage(StorageProvider):
    def __init__(self, path="db/ik_registry.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self.db = sqlite3.connect(path, check_same_thread=False)

        self._init()

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS keyring(
            path TEXT PRIMARY KEY,
            fingerprint TEXT NOT NULL,
            state TEXT NOT NULL,
            created_at TEXT NOT NULL
        )""")
        c.execute("""CREATE INDEX IF NOT EXISTS keyring_fpr ON keyring(fingerprint)""")
        c.execute("""CREATE TABLE IF NOT EXISTS audit(
            ts TEXT,
            event_type TEXT,
            payload TEXT
        )""")

        self.db.commit()

    def upsert_key(self, rec: KeyRecord) -> None:
        self.db.execute(
            "INSERT INTO keyring(path,fingerprint,state,created_at) VALUES(?,?,?,?) "
            "ON CONFLICT(path) DO UPDATE SET fingerprint=excluded.fingerprint, "
            "state=excluded.state, created_at=excluded.created_at",
            (rec.path, rec.fingerprint, rec.state, rec.created_at)
        )
        self.db.commit()

    def get_key(self, path: str) -> Optional[KeyRecord]:
        cur = self.db.execute("SELECT path,fingerprint,state,created_at FROM keyring WHERE path=?", (path,))
        row = cur.fetchone()
        if not row: return None
        return KeyRecord(*row)

    def fetch_by_fingerprint(self, fingerprint: str) -> Optional[KeyRecord]:
        cur = self.db.execute(
            "SELECT path,fingerprint,state,created_at FROM keyring WHERE fingerprint = ?",
            (fingerprint,)
        )
        row = cur.fetchone()
        return KeyRecord(*row) if row else None

    def list_keys(self) -> List[KeyRecord]:
        cur = self.db.execute("SELECT path,fingerprint,state,created_at FROM keyring ORDER BY created_at, path")
        return [KeyRecord(*r) for r in cur.fetchall()]

    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        from ik_core.utils import now_ts, canonical_json

        self.db.execute("INSERT INTO audit(ts,event_type,payload) VALUES(?,?,?)",
                        (now_ts(), event_type, canonical_json(payload)))
        self.db.commit()

    def list_events(self) -> List[Dict[str, Any]]:
        cur = self.db.execute("SELECT ts,event_type,payload FROM audit ORDER BY rowid")
        return [
            {"ts": ts, "event_type": event_type, "payload": json.loads(payload)}
            for ts, event_type, payload in cur.fetchall()
        ]

    def close(self):
        self.db.close()
