"""
Process-wide storage and embedding generator.

Every MCP session of one server process shares a single backend and a single
embedding model. ``StorageManager`` builds the pair on first request and
hands the same objects to every later caller.
"""

import asyncio
import logging
from threading import Lock
from typing import Optional

from .embeddings.base import EmbeddingGenerator
from .embeddings.factory import create_embedding_generator
from .storage.base import MemoryStorage
from .storage.factory import create_storage_instance

logger = logging.getLogger(__name__)


class StorageManager:
    """Lazily builds and owns the shared backend/generator pair."""

    _instance: Optional["StorageManager"] = None
    _lock: Lock = Lock()

    def __init__(self):
        self._storage: MemoryStorage | None = None
        self._embedding_generator: EmbeddingGenerator | None = None
        self._build_lock = asyncio.Lock()

    @classmethod
    def get_instance(cls) -> "StorageManager":
        """Return the process-wide manager, creating it on first call."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = cls()
        return cls._instance

    async def _build(self) -> None:
        generator = create_embedding_generator()
        storage = await create_storage_instance(generator)
        self._embedding_generator = generator
        self._storage = storage
        logger.info(
            f"Shared components ready: storage={storage.backend_name}, "
            f"embedding={generator.name} (size {generator.embedding_size})"
        )

    async def get_storage(self) -> MemoryStorage:
        """
        Return the shared backend, building it on first use.

        Concurrent first callers wait on one build and all receive the same
        instance.
        """
        if self._storage is None:
            async with self._build_lock:
                if self._storage is None:
                    await self._build()
        return self._storage

    async def get_embedding_generator(self) -> EmbeddingGenerator:
        """Return the generator the shared backend embeds with."""
        await self.get_storage()
        return self._embedding_generator

    async def close(self) -> None:
        """Close the backend and forget both components; a no-op when nothing was built."""
        storage, self._storage, self._embedding_generator = self._storage, None, None
        if storage is None:
            return
        logger.info(f"Closing shared {storage.backend_name} storage")
        await storage.close()

    def is_initialized(self) -> bool:
        return self._storage is not None


_manager = StorageManager.get_instance()


async def get_shared_storage() -> MemoryStorage:
    return await _manager.get_storage()


async def get_embedding_generator() -> EmbeddingGenerator:
    return await _manager.get_embedding_generator()


async def close_shared_storage() -> None:
    await _manager.close()


def is_storage_initialized() -> bool:
    return _manager.is_initialized()
