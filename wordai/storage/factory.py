"""Singleton factory for the active storage backend."""

from __future__ import annotations

from functools import lru_cache

from .base import StorageBackend


@lru_cache(maxsize=1)
def get_storage() -> StorageBackend:
    """Return the filesystem backend rooted at `settings.artifact_dir`."""
    from wordai.config import get_settings

    from .local_backend import LocalStorageBackend

    return LocalStorageBackend(base_dir=get_settings().artifact_dir)
