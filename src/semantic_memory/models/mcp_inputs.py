"""MCP tool input models.

Each MCP tool validates its inputs by constructing the corresponding model;
range clamping and required-field logic live here as declarative constraints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .validators import ContentHash, Metadata, Tags


class StoreMemoryParams(BaseModel):
    """Validated input for the ``store_memory`` MCP tool."""

    content: str = Field(min_length=1)
    tags: Tags = []
    memory_type: str | None = None
    metadata: Metadata = Field(default_factory=dict)


class RetrieveMemoryParams(BaseModel):
    """Validated input for the ``retrieve_memory`` MCP tool."""

    query: str = Field(min_length=1)
    n_results: int = Field(default=5, ge=1)


class SearchByTagParams(BaseModel):
    """Validated input for the ``search_by_tag`` MCP tool."""

    tags: Tags = Field(min_length=1)


class DeleteMemoryParams(BaseModel):
    """Validated input for the ``delete_memory`` MCP tool."""

    content_hash: ContentHash
