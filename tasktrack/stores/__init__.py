"""Record store backends."""
from tasktrack.config import Settings
from tasktrack.stores.base import RecordStore


def build_record_store(settings: Settings) -> RecordStore:
    """Pick the backend named by STORE_BACKEND."""
    if settings.store_backend == "memory":
        from tasktrack.stores.memory import MemoryRecordStore
        return MemoryRecordStore()

    from tasktrack.stores.sql import SqlRecordStore
    return SqlRecordStore(settings.database_url)
