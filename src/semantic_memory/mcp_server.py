#!/usr/bin/env python3
"""FastMCP server for the Semantic Memory Service.

Exposes store/retrieve/search/delete as MCP tools. Each tool handler
validates its inputs by constructing a Pydantic input model, delegates to
``MemoryService``, and always returns a structured payload; operation errors
never terminate the server.
"""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP
from pydantic import ValidationError

from .models.mcp_inputs import DeleteMemoryParams, RetrieveMemoryParams, SearchByTagParams, StoreMemoryParams
from .models.validators import normalize_tags
from .services.memory_service import MemoryService
from .storage.base import MemoryStorage

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "This server provides memory storage and retrieval functionality. Use 'store_memory' to store new "
    "memories, 'retrieve_memory' for semantic search, 'search_by_tag' to find memories by tags, and "
    "'delete_memory' to remove memories."
)


def _validation_failure(error: ValidationError) -> dict[str, Any]:
    return {"success": False, "error": str(error), "error_type": "validation"}


@dataclass
class MCPServerContext:
    """Application context for the MCP server with all required components."""

    storage: MemoryStorage
    memory_service: MemoryService


@asynccontextmanager
async def mcp_server_lifespan(server: FastMCP) -> AsyncIterator[MCPServerContext]:
    """Manage MCP server lifecycle with proper resource initialization and cleanup."""
    from .shared_storage import close_shared_storage, get_embedding_generator, get_shared_storage

    storage = await get_shared_storage()
    embedding_generator = await get_embedding_generator()
    memory_service = MemoryService(storage, embedding_generator)

    logger.info(
        f"Memory service ready: backend={storage.backend_name}, "
        f"embedding={embedding_generator.name} (size {embedding_generator.embedding_size})"
    )

    try:
        yield MCPServerContext(storage=storage, memory_service=memory_service)
    finally:
        logger.info("Shutting down Semantic Memory Service components...")
        await close_shared_storage()


# Create FastMCP server instance
mcp = FastMCP("Semantic Memory Service", instructions=INSTRUCTIONS, lifespan=mcp_server_lifespan)


def _memory_service(ctx: Context) -> MemoryService:
    return ctx.request_context.lifespan_context.memory_service


# =============================================================================
# CORE MEMORY OPERATIONS
# =============================================================================


@mcp.tool()
async def store_memory(
    content: str,
    ctx: Context,
    tags: str | list[str] | None = None,
    memory_type: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Store a new memory for future semantic retrieval.

    Identical content (ignoring case and surrounding whitespace) with identical
    metadata is stored only once; a repeat is reported as a duplicate.

    Args:
        content: Text to store (embedded for semantic search)
        tags: Labels; accepts ["tag1", "tag2"] or "tag1,tag2"
        memory_type: Free-form category, e.g. "note" or "fact"
        metadata: Flat key/value pairs; values are stored as strings

    Returns:
        {success, message, content_hash}; duplicates add duplicate=True
    """
    try:
        params = StoreMemoryParams(content=content, tags=tags, memory_type=memory_type, metadata=metadata)
    except ValidationError as e:
        return _validation_failure(e)

    return await _memory_service(ctx).store_memory(
        content=params.content,
        tags=params.tags,
        memory_type=params.memory_type,
        metadata=params.metadata,
    )


@mcp.tool()
async def retrieve_memory(query: str, ctx: Context, n_results: int = 5) -> dict[str, Any]:
    """Retrieve memories semantically similar to the query.

    Args:
        query: Natural language search query
        n_results: Maximum number of results (at least 1, default 5)

    Returns:
        {success, count, message, results}; results are ordered by
        relevance_score, highest first
    """
    try:
        params = RetrieveMemoryParams(query=query, n_results=n_results)
    except ValidationError as e:
        return _validation_failure(e)

    return await _memory_service(ctx).retrieve_memories(params.query, params.n_results)


@mcp.tool()
async def search_by_tag(tags: str | list[str], ctx: Context) -> dict[str, Any]:
    """Find memories carrying any of the given tags (exact match, OR logic).

    Args:
        tags: Tags to search for; accepts ["tag1", "tag2"] or "tag1,tag2"

    Returns:
        {success, count, message, memories}
    """
    if not normalize_tags(tags):
        return {"success": False, "error": "No tags provided for search.", "error_type": "validation"}

    try:
        params = SearchByTagParams(tags=tags)
    except ValidationError as e:
        return _validation_failure(e)

    return await _memory_service(ctx).search_by_tag(params.tags)


@mcp.tool()
async def delete_memory(content_hash: str, ctx: Context) -> dict[str, Any]:
    """Permanently delete a specific memory by its content hash.

    Args:
        content_hash: Identifier returned from store_memory or found in results

    Returns:
        {success, removed, message, content_hash}; removed is False when no
        memory has that hash
    """
    try:
        params = DeleteMemoryParams(content_hash=content_hash)
    except ValidationError as e:
        return _validation_failure(e)

    return await _memory_service(ctx).delete_memory(params.content_hash)


@mcp.tool()
async def check_database_health(ctx: Context) -> dict[str, Any]:
    """Report storage backend, embedding model, and total memory count."""
    return await _memory_service(ctx).check_database_health()


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


def configure_logging(level: str) -> None:
    """Send logs to stderr; stdout carries the stdio transport."""
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    """Main entry point for the MCP server."""
    from .config import settings

    configure_logging(settings.log_level)

    logger.info(f"Starting Semantic Memory Service (transport={settings.server.transport})")
    logger.info(f"Storage backend: {settings.storage.backend}")

    if settings.server.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(transport="http", host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
