"""
Memory Service - Shared business logic for memory operations.

Builds memories from caller input, obtains query embeddings, and turns
storage results into structured payloads. Errors from the embedding
generator or the storage backend never escape: each becomes a failure
payload whose ``error_type`` tells the caller which side failed.
"""

import logging
from typing import Any, TypedDict

from ..embeddings.base import EmbeddingError, EmbeddingGenerator
from ..models.memory import Memory, MemoryQueryResult
from ..storage.base import DUPLICATE_MESSAGE, MemoryStorage, StorageError

logger = logging.getLogger(__name__)


class MemoryResult(TypedDict):
    """Type definition for memory operation results."""

    content: str
    content_hash: str
    tags: list[str]
    memory_type: str | None
    timestamp_seconds: int
    timestamp_iso: str
    metadata: dict[str, str]


def _failure(error: Exception, action: str, **extra: Any) -> dict[str, Any]:
    """Build the failure payload for an exception raised during *action*."""
    if isinstance(error, EmbeddingError):
        error_type = "embedding"
        message = f"Embedding generation failed: {error}"
    elif isinstance(error, StorageError):
        error_type = "storage"
        message = f"Failed to {action}: {error}"
    else:
        error_type = "validation"
        message = f"Invalid input, cannot {action}: {error}"
    return {"success": False, "error": message, "error_type": error_type, **extra}


class MemoryService:
    """
    Shared service for memory operations with consistent business logic.

    One instance wraps the process-wide storage and embedding generator; all
    methods are safe to call from concurrent tasks.
    """

    def __init__(self, storage: MemoryStorage, embedding_generator: EmbeddingGenerator):
        self.storage = storage
        self.embedding_generator = embedding_generator

    async def store_memory(
        self,
        content: str,
        tags: list[str] | None = None,
        memory_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Store a new memory unless identical content and metadata already exist.

        Args:
            content: The memory content
            tags: Optional tags for the memory
            memory_type: Optional memory type classification
            metadata: Optional flat key/value metadata

        Returns:
            Dictionary with operation result; duplicates are reported with
            ``success=False`` and ``duplicate=True``, not as errors
        """
        try:
            memory = Memory.create(content=content, tags=tags, memory_type=memory_type, metadata=metadata)
            accepted, message = await self.storage.store(memory)
        except (EmbeddingError, StorageError, ValueError) as e:
            logger.error(f"Error storing memory: {e}")
            return _failure(e, "store memory")

        if accepted:
            logger.info(f"Stored memory {memory.content_hash[:8]}...")
            return {"success": True, "message": message, "content_hash": memory.content_hash}

        logger.info(f"Rejected duplicate memory {memory.content_hash[:8]}...")
        return {
            "success": False,
            "duplicate": message == DUPLICATE_MESSAGE,
            "message": message,
            "content_hash": memory.content_hash,
        }

    async def retrieve_memories(self, query: str, n_results: int = 5) -> dict[str, Any]:
        """
        Retrieve memories semantically similar to the query.

        Args:
            query: Search query text
            n_results: Maximum number of results to return

        Returns:
            Dictionary with results ordered by relevance (highest first)
        """
        try:
            query_embedding = await self.embedding_generator.generate_embedding(query)
            results = await self.storage.retrieve(query_embedding, n_results)
        except (EmbeddingError, StorageError, ValueError) as e:
            logger.error(f"Error retrieving memories: {e}")
            return _failure(e, "retrieve memories", query=query)

        formatted = [self._format_query_result(r) for r in results]
        message = f"Found {len(formatted)} memories" if formatted else "No matching memories found"
        return {"success": True, "query": query, "count": len(formatted), "message": message, "results": formatted}

    async def search_by_tag(self, tags: list[str]) -> dict[str, Any]:
        """
        Search memories carrying ANY of the given tags.

        Args:
            tags: Tags to match (OR logic)

        Returns:
            Dictionary with matching memories
        """
        try:
            memories = await self.storage.search_by_tag(tags)
        except StorageError as e:
            logger.error(f"Error searching by tags: {e}")
            return _failure(e, "search by tags", tags=tags)

        formatted = [self._format_memory_response(m) for m in memories]
        if formatted:
            message = f"Found {len(formatted)} memories with tags {tags}"
        else:
            message = "No memories found with the specified tags"
        return {"success": True, "tags": tags, "count": len(formatted), "message": message, "memories": formatted}

    async def delete_memory(self, content_hash: str) -> dict[str, Any]:
        """
        Delete a memory by its content hash.

        Args:
            content_hash: The content hash of the memory to delete

        Returns:
            Dictionary with operation result; an unknown hash yields
            ``removed=False`` rather than an error
        """
        try:
            removed, message = await self.storage.delete(content_hash)
        except StorageError as e:
            logger.error(f"Error deleting memory: {e}")
            return _failure(e, "delete memory", content_hash=content_hash)

        if removed:
            logger.info(f"Deleted memory {content_hash[:8]}...")
        return {"success": removed, "removed": removed, "message": message, "content_hash": content_hash}

    async def check_database_health(self) -> dict[str, Any]:
        """Report backend, embedding model, and memory count."""
        try:
            total = await self.storage.count()
        except StorageError as e:
            logger.error(f"Health check failed: {e}")
            return {**_failure(e, "check database health"), "status": "unhealthy", "backend": self.storage.backend_name}

        return {
            "success": True,
            "status": "healthy",
            "backend": self.storage.backend_name,
            "embedding_model": self.embedding_generator.name,
            "embedding_size": self.embedding_generator.embedding_size,
            "total_memories": total,
        }

    def _format_query_result(self, result: MemoryQueryResult) -> dict[str, Any]:
        return {**self._format_memory_response(result.memory), "relevance_score": result.relevance_score}

    def _format_memory_response(self, memory: Memory) -> MemoryResult:
        """
        Format a memory object for API response.

        Args:
            memory: The memory object to format

        Returns:
            Formatted memory dictionary (no embedding)
        """
        return memory.to_dict()
