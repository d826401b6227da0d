"""Pluggable storage backends selected once at process start."""

from __future__ import annotations

from functools import lru_cache

from app.config import settings
from app.storage.base import Storage


def build_storage(backend: str) -> Storage:
    """Construct the storage bundle named by ``backend``."""
    if backend == "memory":
        from app.storage.memory import build_memory_storage

        return build_memory_storage()
    if backend == "supabase":
        from app.storage.supabase import build_supabase_storage
        from app.utils.supabase_client import get_service_client

        return build_supabase_storage(get_service_client())
    raise ValueError(f"Unknown storage backend: {backend!r}")


@lru_cache(maxsize=1)
def get_storage() -> Storage:
    """Return the process-wide storage bundle configured in settings."""
    return build_storage(settings.storage_backend)


__all__ = ["Storage", "build_storage", "get_storage"]
