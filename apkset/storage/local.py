"""
Local filesystem storage backend.

Writes extracted artifacts below a base directory, creating it on demand.
"""

from __future__ import annotations

from pathlib import Path

import aiofiles
import aiofiles.os

from ..core.logging import get_logger
from .interface import StorageBackend

logger = get_logger(__name__)


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: Path) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for all storage operations
        """
        self.base_path = base_path.resolve()

    async def _ensure_parent(self, path: Path) -> None:
        parent = path.parent
        if not parent.exists():
            logger.info("Output directory does not exist, creating it", path=str(parent))
            parent.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """Get full filesystem path for a key.

        Normalizes the key so the resulting path always stays within the base
        storage directory.

        Args:
            key: The storage key to convert to a filesystem path.

        Returns:
            The resolved absolute path within the base storage directory.
        """
        clean_key = key.replace("\\", "/").replace("..", "").replace(":", "").lstrip("/")
        full_path = (self.base_path / clean_key).resolve()
        try:
            full_path.relative_to(self.base_path)
        except ValueError:
            clean_key = clean_key.replace("/", "_").replace("\\", "_")
            full_path = self.base_path / clean_key
        return full_path

    async def store_bytes(self, key: str, data: bytes) -> str:
        full_path = self.path_for(key)
        await self._ensure_parent(full_path)
        async with aiofiles.open(full_path, "wb") as f:
            await f.write(data)
        return key

    async def store_text(self, key: str, content: str) -> str:
        full_path = self.path_for(key)
        await self._ensure_parent(full_path)
        async with aiofiles.open(full_path, "w", encoding="utf-8") as f:
            await f.write(content)
        return key

    async def load_bytes(self, key: str) -> bytes:
        full_path = self.path_for(key)
        if not full_path.exists():
            raise FileNotFoundError(f"Key not found: {key}")
        async with aiofiles.open(full_path, "rb") as f:
            return await f.read()

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self.path_for(key))

    async def delete(self, key: str) -> bool:
        full_path = self.path_for(key)
        if not full_path.exists():
            return False
        await aiofiles.os.remove(full_path)
        return True
