"""Memory-related data models.

``Memory`` is the record every backend stores; ``MemoryQueryResult`` pairs
one with its similarity to a query embedding.
"""

import time
from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.hashing import filter_metadata, generate_content_hash
from .validators import ContentHash, Metadata, Tags


def _now_seconds() -> int:
    return int(time.time())


class Memory(BaseModel):
    """Represents a single memory entry with validated fields."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(min_length=1)
    content_hash: ContentHash
    tags: Tags = []
    memory_type: str | None = None
    # Epoch seconds, set once at creation
    timestamp_seconds: int = Field(default_factory=_now_seconds)
    metadata: Metadata = Field(default_factory=dict)
    embedding: list[float] | None = None

    @field_validator("metadata", mode="after")
    @classmethod
    def strip_reserved_keys(cls, v: dict[str, str]) -> dict[str, str]:
        """Volatile keys (timestamp, content_hash, embedding) are never user metadata."""
        return filter_metadata(v)

    @classmethod
    def create(
        cls,
        content: str,
        tags: list[str] | str | None = None,
        memory_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        timestamp_seconds: int | None = None,
    ) -> Self:
        """Build a new memory, deriving its content hash from content and metadata."""
        memory = cls(
            content=content,
            content_hash="pending",
            tags=tags,
            memory_type=memory_type,
            metadata=metadata,
            timestamp_seconds=timestamp_seconds if timestamp_seconds is not None else _now_seconds(),
        )
        memory.content_hash = generate_content_hash(memory.content, memory.metadata)
        return memory

    @property
    def timestamp(self) -> datetime:
        """Creation time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp_seconds, timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a response dictionary. The embedding is never included."""
        return {
            "content": self.content,
            "content_hash": self.content_hash,
            "tags": list(self.tags),
            "memory_type": self.memory_type,
            "timestamp_seconds": self.timestamp_seconds,
            "timestamp_iso": self.timestamp.isoformat().replace("+00:00", "Z"),
            "metadata": dict(self.metadata),
        }


class MemoryQueryResult(BaseModel):
    """Memory query result with relevance score."""

    model_config = ConfigDict(populate_by_name=True)

    memory: Memory
    relevance_score: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "memory": self.memory.to_dict(),
            "relevance_score": self.relevance_score,
        }
