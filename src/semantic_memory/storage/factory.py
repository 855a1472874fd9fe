# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Storage backend factory for the Semantic Memory Service.

Creates the configured backend; if the remote backend cannot be constructed
or initialized, startup degrades to the in-process backend.
"""

import logging

from ..config import Settings
from ..embeddings.base import EmbeddingGenerator
from .base import MemoryStorage, StorageError
from .chroma import ChromaStorage
from .memory import InMemoryStorage

logger = logging.getLogger(__name__)


async def create_storage_instance(
    embedding_generator: EmbeddingGenerator,
    config: Settings | None = None,
) -> MemoryStorage:
    """
    Create and initialize the configured storage backend instance.

    Args:
        embedding_generator: Generator shared with the service layer
        config: Settings to read (defaults to the global settings)

    Returns:
        Initialized MemoryStorage instance
    """
    if config is None:
        from ..config import settings

        config = settings

    if config.storage.backend == "chromadb":
        logger.info("Creating ChromaDB storage backend instance...")
        storage = None
        try:
            storage = ChromaStorage(
                url=config.chroma.url,
                collection_name=config.chroma.collection,
                embedding_generator=embedding_generator,
                api_path=config.chroma.api_path,
                timeout=config.chroma.timeout,
            )
            await storage.initialize()
            logger.info(f"Using ChromaDB storage at {config.chroma.url} (collection '{config.chroma.collection}')")
            return storage
        except StorageError as e:
            logger.error(f"Failed to initialize ChromaDB storage: {e}")
            logger.warning("Falling back to in-memory storage.")
            if storage is not None:
                await storage.close()

    logger.info("Using in-memory storage")
    storage = InMemoryStorage(embedding_generator)
    await storage.initialize()
    return storage
