"""
Object storage for receipt images.

Paths are bucket-relative (``<user_id>/<receipt_id>.jpg``). The shipped
adapter keeps objects on the local filesystem under ``STORAGE_DIR``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from receiptsnap.errors import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Path-addressed blob store."""

    @abstractmethod
    def upload(self, path: str, data: bytes, *, content_type: str, upsert: bool = False) -> str:
        """Write *data* at *path*; raises ``StorageError`` on failure."""


class LocalObjectStorage(ObjectStorage):
    def __init__(self, root: str | Path, bucket: str = "receipts") -> None:
        self.bucket_dir = Path(root).resolve() / bucket

    def resolve(self, path: str) -> Path:
        target = (self.bucket_dir / path).resolve()
        if not target.is_relative_to(self.bucket_dir):
            raise StorageError(f"Invalid object path: {path}")
        return target

    def upload(self, path: str, data: bytes, *, content_type: str, upsert: bool = False) -> str:
        target = self.resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"The resource already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type)
        return path
