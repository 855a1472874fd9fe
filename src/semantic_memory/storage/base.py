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
Storage interface for the Semantic Memory Service.

Backends are interchangeable implementations of ``MemoryStorage``; one is
built at startup and held behind this interface for the process lifetime.
"""

from abc import ABC, abstractmethod

from ..embeddings.base import EmbeddingGenerator
from ..models.memory import Memory, MemoryQueryResult

DUPLICATE_MESSAGE = "Duplicate content detected"


class StorageError(Exception):
    """Storage-related errors."""

    pass


class TransportError(StorageError):
    """Network failure, non-success status, or malformed response from a remote backend."""

    pass


class ConfigurationError(StorageError):
    """Invalid backend configuration detected at construction time."""

    pass


class MemoryStorage(ABC):
    """Abstract base class for memory storage backends."""

    def __init__(self, embedding_generator: EmbeddingGenerator):
        self.embedding_generator = embedding_generator

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short backend identifier reported in health output."""
        pass

    @property
    def embedding_size(self) -> int:
        """Vector length every stored embedding must have."""
        return self.embedding_generator.embedding_size

    async def initialize(self) -> None:
        """Prepare the backend for use. Default: nothing to do."""
        return None

    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        return None

    @abstractmethod
    async def exists(self, content_hash: str) -> bool:
        """Return True if a memory with this content hash is stored."""
        pass

    @abstractmethod
    async def store(self, memory: Memory) -> tuple[bool, str]:
        """
        Store a memory unless one with the same content hash already exists.

        The embedding is generated when absent.

        Returns:
            Tuple of (accepted, message); (False, DUPLICATE_MESSAGE) for duplicates
        """
        pass

    @abstractmethod
    async def retrieve(self, query_embedding: list[float], n_results: int = 5) -> list[MemoryQueryResult]:
        """
        Rank stored memories by similarity to a query embedding.

        Returns:
            At most n_results results, relevance_score non-increasing. Order
            among equal scores follows backend iteration order.
        """
        pass

    @abstractmethod
    async def search_by_tag(self, tags: list[str]) -> list[Memory]:
        """Return memories carrying at least one of *tags*; an empty list matches nothing."""
        pass

    @abstractmethod
    async def delete(self, content_hash: str) -> tuple[bool, str]:
        """
        Delete a memory by content hash.

        Returns:
            Tuple of (removed, message); removed is False when the hash is absent
        """
        pass

    @abstractmethod
    async def get_by_hash(self, content_hash: str) -> Memory | None:
        """Fetch a single memory, including its embedding, or None."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of stored memories."""
        pass

    def _validate_embedding(self, embedding: list[float]) -> None:
        """Reject vectors whose length differs from the configured embedding size."""
        if len(embedding) != self.embedding_size:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.embedding_size}, "
                f"got {len(embedding)}. "
                f"This indicates a configuration error or model version change."
            )
