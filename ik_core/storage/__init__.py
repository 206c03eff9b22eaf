# ik_core/storage/__init__.py

from .models import KeyRecord
from .provider import StorageProvider
from .providers.memory_provider import InMemoryStorage
from .providers.sqlite_provider import SQLiteStorage
import os


def load_storage_provider(config: dict | None = None) -> StorageProvider:
    """
    Factory resolver for the registry bookkeeping backend.

        - memory (default)
        - sqlite
    """
    config = config or {}
    provider = config.get("provider") or os.getenv("IK_STORAGE_PROVIDER", "memory")

    if provider == "memory":
        return InMemoryStorage()

    if provider == "sqlite":
        db_path = config.get("sqlite_path") or os.getenv("IK_DB_PATH", "db/ik_registry.db")
        return SQLiteStorage(str(db_path))

    raise ValueError(f"Unknown storage provider: {provider}")


__all__ = [
    "KeyRecord",
    "StorageProvider",
    "InMemoryStorage",
    "SQLiteStorage",
    "load_storage_provider",
]
