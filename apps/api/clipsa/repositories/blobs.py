"""Blob storage for generated media."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from threading import Lock
from typing import Any, BinaryIO
from uuid import uuid4

_CHUNK_SIZE = 256 * 1024


class BlobNotFound(Exception):
    """Raised when a blob id does not exist in the store."""


@dataclass(slots=True)
class BlobInfo:
    id: str
    filename: str
    content_type: str
    size_bytes: int
    uploaded_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


class BlobStore(ABC):
    """Content store addressed by opaque ids."""

    @abstractmethod
    def store(
        self,
        stream: BinaryIO,
        *,
        filename: str,
        metadata: dict[str, Any] | None = None,
        content_type: str = "application/octet-stream",
    ) -> str: ...

    @abstractmethod
    def stat(self, blob_id: str) -> BlobInfo: ...

    @abstractmethod
    def fetch(self, blob_id: str) -> Iterator[bytes]: ...

    @abstractmethod
    def delete(self, blob_id: str) -> None: ...


class InMemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._info: dict[str, BlobInfo] = {}
        self._lock = Lock()

    def store(
        self,
        stream: BinaryIO,
        *,
        filename: str,
        metadata: dict[str, Any] | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        chunks: list[bytes] = []
        while True:
            chunk = stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)

        blob_id = uuid4().hex[:24]
        info = BlobInfo(
            id=blob_id,
            filename=filename,
            content_type=content_type,
            size_bytes=len(data),
            uploaded_at=datetime.now(UTC),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._data[blob_id] = data
            self._info[blob_id] = info
        return blob_id

    def stat(self, blob_id: str) -> BlobInfo:
        with self._lock:
            info = self._info.get(blob_id)
        if info is None:
            raise BlobNotFound(blob_id)
        return info

    def fetch(self, blob_id: str) -> Iterator[bytes]:
        with self._lock:
            data = self._data.get(blob_id)
        if data is None:
            raise BlobNotFound(blob_id)
        return iter([data[offset : offset + _CHUNK_SIZE] for offset in range(0, len(data), _CHUNK_SIZE)])

    def delete(self, blob_id: str) -> None:
        with self._lock:
            if blob_id not in self._data:
                raise BlobNotFound(blob_id)
            del self._data[blob_id]
            del self._info[blob_id]


__all__ = ["BlobInfo", "BlobNotFound", "BlobStore", "InMemoryBlobStore"]
