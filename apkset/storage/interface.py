"""
Storage backend interface.

Defines the abstract interface extracted artifacts are written through,
enabling pluggable destinations (local filesystem, temporary directories, ...).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel


class StorageBackend(ABC):
    """Abstract storage backend interface."""

    @abstractmethod
    async def store_bytes(self, key: str, data: bytes) -> str:
        """Store raw bytes and return the storage key.

        Args:
            key: Storage key/path
            data: Raw bytes to store

        Returns:
            The final storage key
        """
        ...

    @abstractmethod
    async def store_text(self, key: str, content: str) -> str:
        """Store text content and return the storage key."""
        ...

    async def store_model(self, key: str, model: BaseModel) -> str:
        """Store a Pydantic model as camelCase JSON.

        Args:
            key: Storage key/path.
            model: Pydantic model instance to store.

        Returns:
            The final storage key.
        """
        content = model.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        return await self.store_text(key, content)

    @abstractmethod
    async def load_bytes(self, key: str) -> bytes:
        """Load raw bytes from storage.

        Raises:
            FileNotFoundError: If the key does not exist.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in storage."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key from storage.

        Returns:
            True if the key was deleted, False if it did not exist.
        """
        ...

    @abstractmethod
    def path_for(self, key: str) -> Path:
        """Get the filesystem location a key is stored at."""
        ...
