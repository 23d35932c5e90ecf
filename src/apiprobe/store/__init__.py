"""Record store backends and startup selection."""

from apiprobe.config import RecordStoreBackend, Settings, get_settings
from apiprobe.store.base import RecordStore
from apiprobe.store.memory import MemoryRecordStore
from apiprobe.store.redis import RedisRecordStore


def create_record_store(settings: Settings | None = None) -> RecordStore:
    """Build the configured record store.

    Raises:
        ValueError: The redis backend is selected without a redis URL.
    """
    settings = settings or get_settings()
    if settings.record_store == RecordStoreBackend.REDIS:
        if not settings.redis_url:
            raise ValueError(
                "APIPROBE_REDIS_URL must be set when APIPROBE_RECORD_STORE=redis"
            )
        return RedisRecordStore.from_url(settings.redis_url)
    return MemoryRecordStore(settings.mock_store_path)


__all__ = [
    "MemoryRecordStore",
    "RecordStore",
    "RedisRecordStore",
    "create_record_store",
]
