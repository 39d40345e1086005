"""Storage backends for model artifacts."""

from .base import StorageBackend
from .factory import get_storage
from .local_backend import LocalStorageBackend

__all__ = ["LocalStorageBackend", "StorageBackend", "get_storage"]
