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
In-process storage backend.

Holds memories in a dict keyed by content hash and ranks by exact cosine
similarity over a full scan. A single asyncio.Lock guards the whole table.
"""

import asyncio
import logging

from ..embeddings.base import EmbeddingGenerator
from ..models.memory import Memory, MemoryQueryResult
from ..utils.similarity import cosine_similarity
from .base import DUPLICATE_MESSAGE, MemoryStorage

logger = logging.getLogger(__name__)


class InMemoryStorage(MemoryStorage):
    """
    Dict-backed storage with linear-scan similarity search.

    No persistence; everything is lost when the process exits.
    """

    def __init__(self, embedding_generator: EmbeddingGenerator):
        super().__init__(embedding_generator)
        self._memories: dict[str, Memory] = {}
        self._lock = asyncio.Lock()
        logger.info(f"Initializing InMemoryStorage: embedding={embedding_generator.name}, size={self.embedding_size}")

    @property
    def backend_name(self) -> str:
        return "memory"

    async def exists(self, content_hash: str) -> bool:
        async with self._lock:
            return content_hash in self._memories

    async def store(self, memory: Memory) -> tuple[bool, str]:
        if await self.exists(memory.content_hash):
            return False, DUPLICATE_MESSAGE

        # Embed outside the lock; inference must not stall other callers
        record = memory.model_copy(deep=True)
        if record.embedding is None:
            record.embedding = await self.embedding_generator.generate_embedding(record.content)
            logger.debug(f"Generated embedding for memory {record.content_hash[:8]}...")
        self._validate_embedding(record.embedding)

        async with self._lock:
            # Re-check: a concurrent store may have won while we were embedding
            if record.content_hash in self._memories:
                return False, DUPLICATE_MESSAGE
            self._memories[record.content_hash] = record

        logger.debug(f"Stored memory {record.content_hash[:8]}... in memory")
        return True, f"Successfully stored memory with hash: {record.content_hash}"

    async def retrieve(self, query_embedding: list[float], n_results: int = 5) -> list[MemoryQueryResult]:
        if n_results <= 0:
            return []
        self._validate_embedding(query_embedding)

        async with self._lock:
            candidates = list(self._memories.values())

        results = [
            MemoryQueryResult(
                memory=memory.model_copy(deep=True),
                relevance_score=cosine_similarity(query_embedding, memory.embedding),
            )
            for memory in candidates
            if memory.embedding is not None
        ]
        # Stable sort: ties keep table insertion order
        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[:n_results]

    async def search_by_tag(self, tags: list[str]) -> list[Memory]:
        if not tags:
            return []
        wanted = set(tags)

        async with self._lock:
            return [m.model_copy(deep=True) for m in self._memories.values() if wanted.intersection(m.tags)]

    async def delete(self, content_hash: str) -> tuple[bool, str]:
        async with self._lock:
            removed = self._memories.pop(content_hash, None)

        if removed is None:
            return False, f"No memory found with hash: {content_hash}"
        logger.debug(f"Deleted memory {content_hash[:8]}...")
        return True, f"Successfully deleted memory with hash: {content_hash}"

    async def get_by_hash(self, content_hash: str) -> Memory | None:
        async with self._lock:
            memory = self._memories.get(content_hash)
        return memory.model_copy(deep=True) if memory is not None else None

    async def count(self) -> int:
        async with self._lock:
            return len(self._memories)
