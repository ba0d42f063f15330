from collections.abc import Iterator

from config import settings
from db.database import SessionLocal
from storage.base import Storage
from storage.database import DatabaseStorage
from storage.memory import MemStorage

_memory_storage = MemStorage()


def get_storage() -> Iterator[Storage]:
    """FastAPI dependency yielding the configured storage backend."""
    if settings.STORAGE_BACKEND == "memory":
        yield _memory_storage
        return
    db = SessionLocal()
    try:
        yield DatabaseStorage(db)
    finally:
        db.close()


__all__ = ["Storage", "MemStorage", "DatabaseStorage", "get_storage"]
