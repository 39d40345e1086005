"""Abstract interface for artifact storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping


class StorageBackend(ABC):
    """Keyed blob storage for model artifacts."""

    @abstractmethod
    def object_exists(self, object_key: str, bucket: str) -> bool:
        """Check whether an object exists."""

    @abstractmethod
    def write_bundle(self, prefix: str, blobs: Mapping[str, bytes], bucket: str) -> None:
        """Replace every object under `prefix` with `blobs` as one unit."""

    @abstractmethod
    def read_bundle(self, prefix: str, names: list[str], bucket: str) -> dict[str, bytes]:
        """Read the named objects under `prefix`; raises FileNotFoundError if any is missing."""
