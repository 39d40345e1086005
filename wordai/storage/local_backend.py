"""Local filesystem storage backend."""

from __future__ import annotations

import shutil
import uuid
from collections.abc import Mapping
from pathlib import Path

import structlog

from .base import StorageBackend

logger = structlog.get_logger(__name__)


class LocalStorageBackend(StorageBackend):
    """
    Filesystem backend.

    Objects live under base_dir/{bucket}/{object_key}. A bundle is a directory
    base_dir/{bucket}/{prefix}/ whose files are always replaced together.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def _resolve(self, object_key: str, bucket: str) -> Path:
        return self.base_dir / bucket / object_key

    def object_exists(self, object_key: str, bucket: str) -> bool:
        return self._resolve(object_key, bucket).exists()

    def write_bundle(self, prefix: str, blobs: Mapping[str, bytes], bucket: str) -> None:
        target = self._resolve(prefix, bucket)
        target.parent.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex
        staging = target.parent / f".{target.name}.staging-{token}"
        retired = target.parent / f".{target.name}.old-{token}"

        staging.mkdir()
        try:
            for name, data in blobs.items():
                (staging / name).write_bytes(data)
            # Readers see either the complete old bundle or the complete new one.
            if target.exists():
                target.rename(retired)
            staging.rename(target)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            if retired.exists() and not target.exists():
                retired.rename(target)
            raise
        shutil.rmtree(retired, ignore_errors=True)
        logger.debug("local_storage.bundle_written", prefix=prefix, bucket=bucket, blobs=sorted(blobs))

    def read_bundle(self, prefix: str, names: list[str], bucket: str) -> dict[str, bytes]:
        directory = self._resolve(prefix, bucket)
        return {name: (directory / name).read_bytes() for name in names}
