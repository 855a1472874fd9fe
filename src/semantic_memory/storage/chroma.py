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
ChromaDB storage backend for the Semantic Memory Service.

Maps the storage operations onto a named collection of a remote vector
database over its JSON/HTTP collection API. The object ID of every record is
its content hash.
"""

import json
import logging
import math
import re
import time
from typing import Any

import httpx
from pydantic import ValidationError

from ..embeddings.base import EmbeddingGenerator
from ..models.memory import Memory, MemoryQueryResult
from .base import DUPLICATE_MESSAGE, ConfigurationError, MemoryStorage, TransportError

logger = logging.getLogger(__name__)

# User metadata keys are namespaced so they cannot collide with the fields below
METADATA_PREFIX = "metadata_"

# Collection names: 3-63 chars, alphanumeric at both ends, [A-Za-z0-9._-] inside
_COLLECTION_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{1,61}[A-Za-z0-9]$")


def validate_collection_name(name: str) -> str:
    """
    Check a collection name against the database naming rules.

    Raises:
        ConfigurationError: If the name is not acceptable
    """
    if not _COLLECTION_NAME_RE.match(name) or ".." in name:
        raise ConfigurationError(
            f"Invalid collection name '{name}': use 3-63 characters from [A-Za-z0-9._-], "
            f"starting and ending with a letter or digit, without '..'"
        )
    return name


def validate_url(url: str) -> httpx.URL:
    """
    Parse and check the remote endpoint URL.

    Raises:
        ConfigurationError: If the URL is not an absolute http(s) URL
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid ChromaDB URL '{url}': {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigurationError(f"Invalid ChromaDB URL '{url}': expected http(s)://host[:port]")
    return parsed


def encode_metadata(memory: Memory) -> dict[str, Any]:
    """Flatten a memory into the collection's string-keyed metadata map."""
    encoded: dict[str, Any] = {
        "content_hash": memory.content_hash,
        "timestamp_seconds": memory.timestamp_seconds,
        "tags": list(memory.tags),
    }
    if memory.memory_type is not None:
        encoded["memory_type"] = memory.memory_type
    for key, value in memory.metadata.items():
        encoded[f"{METADATA_PREFIX}{key}"] = value
    return encoded


def _decode_tags(raw: Any) -> list[str]:
    # Arrays are written natively; JSON-encoded strings are accepted too
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [t for t in raw if isinstance(t, str)]


def _decode_timestamp(raw: Any) -> int:
    if isinstance(raw, int | float) and not isinstance(raw, bool) and math.isfinite(raw):
        return int(raw)
    return int(time.time())


def _decode_embedding(raw: Any) -> list[float] | None:
    if not isinstance(raw, list):
        return None
    if not all(isinstance(x, int | float) and not isinstance(x, bool) for x in raw):
        return None
    return [float(x) for x in raw]


def decode_memory(
    object_id: str,
    document: str,
    metadata: dict[str, Any],
    embedding: list[float] | None = None,
) -> Memory:
    """Rebuild a Memory from an object ID, document body, and metadata map.

    Only ``metadata_``-prefixed keys return to user metadata; every other key
    is a reserved field or foreign and is ignored.
    """
    memory_type = metadata.get("memory_type")
    user_metadata = {
        key[len(METADATA_PREFIX) :]: value
        for key, value in metadata.items()
        if key.startswith(METADATA_PREFIX) and isinstance(value, str)
    }
    return Memory(
        content=document,
        content_hash=object_id,
        tags=_decode_tags(metadata.get("tags")),
        memory_type=memory_type if isinstance(memory_type, str) else None,
        timestamp_seconds=_decode_timestamp(metadata.get("timestamp_seconds")),
        metadata=user_metadata,
        embedding=embedding,
    )


def _decode_row(object_id: Any, document: Any, metadata: Any, raw_embedding: Any) -> Memory | None:
    """Decode one response row, or return None when the row is unusable."""
    if not (isinstance(object_id, str) and object_id and isinstance(document, str) and document):
        return None
    if not isinstance(metadata, dict):
        return None
    try:
        return decode_memory(object_id, document, metadata, _decode_embedding(raw_embedding))
    except ValidationError as e:
        logger.warning(f"Skipping malformed record '{object_id}': {e.error_count()} validation error(s)")
        return None


def _list_field(result: dict[str, Any], field: str) -> list[Any] | None:
    value = result.get(field)
    return value if isinstance(value, list) else None


def _first_batch(result: dict[str, Any], field: str) -> list[Any] | None:
    """Unwrap the per-query nesting of a query response (batch of one)."""
    value = _list_field(result, field)
    if not value or not isinstance(value[0], list):
        return None
    return value[0]


def _item(values: list[Any] | None, index: int) -> Any:
    if values is None or index >= len(values):
        return None
    return values[index]


class ChromaStorage(MemoryStorage):
    """
    Remote vector-collection storage over HTTP.

    Duplicate detection is a point lookup followed by a separate write, so two
    concurrent stores of the same content may both pass the check; the
    database then holds a single object under that ID, written twice. No
    retries are attempted: every failed call raises TransportError.
    """

    def __init__(
        self,
        url: str,
        collection_name: str,
        embedding_generator: EmbeddingGenerator,
        api_path: str = "/api/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client; the collection is checked in initialize().

        Args:
            url: Database base URL, e.g. "http://localhost:8000"
            collection_name: Collection holding the memories
            embedding_generator: Generator for memories stored without an embedding
            api_path: REST prefix prepended to every endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ConfigurationError: If the URL or collection name is invalid
        """
        super().__init__(embedding_generator)
        base = validate_url(url)
        self.collection_name = validate_collection_name(collection_name)
        self.url = str(base)
        self.api_path = "/" + api_path.strip("/") if api_path.strip("/") else ""
        self.timeout = timeout

        self._client = httpx.AsyncClient(
            base_url=f"{self.url.rstrip('/')}{self.api_path}",
            timeout=timeout,
            transport=transport,
        )
        self._initialized = False

        logger.info(f"Initializing ChromaStorage: url={self.url}, collection={collection_name}")

    @property
    def backend_name(self) -> str:
        return "chromadb"

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, operation: str, body: dict[str, Any] | None = None) -> Any:
        """Send one request and return the decoded JSON body."""
        try:
            response = await self._client.request(method, path, json=body)
        except httpx.HTTPError as e:
            logger.error(f"{operation} failed: {e.__class__.__name__}: {e}")
            raise TransportError(f"{operation} failed: {e}") from e

        if not response.is_success:
            logger.error(f"{operation} failed: HTTP {response.status_code}")
            raise TransportError(f"{operation} failed: HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{operation} failed: unparsable response body")
            raise TransportError(f"{operation} failed: response is not valid JSON") from e

    async def _collection_call(self, action: str, operation: str, body: dict[str, Any]) -> dict[str, Any]:
        result = await self._request("POST", f"/collections/{self.collection_name}/{action}", operation, body)
        if not isinstance(result, dict):
            raise TransportError(f"{operation} failed: expected a JSON object, got {type(result).__name__}")
        return result

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Ensure the collection exists, creating it with cosine distance if needed.

        Losing a creation race to another client is not an error: the
        collection exists either way.
        """
        if self._initialized:
            logger.debug("ChromaStorage already initialized")
            return

        if await self._collection_exists():
            logger.info(f"Collection '{self.collection_name}' exists")
        else:
            logger.info(f"Creating collection '{self.collection_name}' with cosine distance")
            try:
                await self._request(
                    "POST",
                    "/collections",
                    "Create collection",
                    {"name": self.collection_name, "metadata": {"hnsw:space": "cosine"}},
                )
            except TransportError as e:
                if not await self._collection_exists():
                    raise
                logger.warning(f"Collection '{self.collection_name}' was created concurrently, continuing: {e}")

        self._initialized = True
        logger.info("ChromaStorage initialization complete")

    async def _collection_exists(self) -> bool:
        collections = await self._request("GET", "/collections", "List collections")
        if not isinstance(collections, list):
            raise TransportError("List collections failed: expected a JSON array")
        exists = any(isinstance(c, dict) and c.get("name") == self.collection_name for c in collections)
        logger.debug(f"Collection '{self.collection_name}' exists: {exists}")
        return exists

    async def close(self) -> None:
        """Close the HTTP client. Safe to call multiple times."""
        if not self._client.is_closed:
            await self._client.aclose()
            logger.info("ChromaDB client closed")

    # ------------------------------------------------------------------
    # Storage operations
    # ------------------------------------------------------------------

    async def exists(self, content_hash: str) -> bool:
        result = await self._collection_call("get", "Check for duplicate", {"ids": [content_hash]})
        ids = _list_field(result, "ids")
        return bool(ids)

    async def store(self, memory: Memory) -> tuple[bool, str]:
        """
        Store a memory with its embedding, metadata, and content as document.

        Returns:
            Tuple of (success, message)
        """
        if await self.exists(memory.content_hash):
            return False, DUPLICATE_MESSAGE

        embedding = memory.embedding
        if embedding is None:
            embedding = await self.embedding_generator.generate_embedding(memory.content)
            logger.debug(f"Generated embedding for memory {memory.content_hash[:8]}...")
        self._validate_embedding(embedding)

        await self._collection_call(
            "add",
            "Store memory",
            {
                "ids": [memory.content_hash],
                "embeddings": [embedding],
                "metadatas": [encode_metadata(memory)],
                "documents": [memory.content],
            },
        )

        logger.debug(f"Stored memory {memory.content_hash[:8]}... in collection '{self.collection_name}'")
        return True, f"Successfully stored memory with hash: {memory.content_hash}"

    async def retrieve(self, query_embedding: list[float], n_results: int = 5) -> list[MemoryQueryResult]:
        """
        Nearest-neighbour query against the collection.

        Distances are cosine distances, so relevance is ``1 - distance``.
        """
        if n_results <= 0:
            return []
        self._validate_embedding(query_embedding)

        result = await self._collection_call(
            "query",
            "Query memories",
            {
                "query_embeddings": [query_embedding],
                "n_results": n_results,
                "include": ["metadatas", "documents", "embeddings", "distances"],
            },
        )

        ids = _first_batch(result, "ids")
        documents = _first_batch(result, "documents")
        metadatas = _first_batch(result, "metadatas")
        distances = _first_batch(result, "distances")
        embeddings = _first_batch(result, "embeddings")

        if ids is None or documents is None or metadatas is None or distances is None:
            return []

        results = []
        for i, object_id in enumerate(ids):
            document = _item(documents, i)
            metadata = _item(metadatas, i)
            distance = _item(distances, i)
            if not isinstance(distance, int | float) or isinstance(distance, bool):
                continue
            memory = _decode_row(object_id, document, metadata, _item(embeddings, i))
            if memory is None:
                continue
            results.append(MemoryQueryResult(memory=memory, relevance_score=1.0 - float(distance)))

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[:n_results]

    async def search_by_tag(self, tags: list[str]) -> list[Memory]:
        """Fetch memories having ANY of the tags (OR logic); no ranking."""
        if not tags:
            return []

        conditions = [{"$contains": {"path": "tags", "value": tag}} for tag in tags]
        where = conditions[0] if len(conditions) == 1 else {"$or": conditions}

        result = await self._collection_call(
            "get",
            "Search by tags",
            {"where": where, "include": ["metadatas", "documents", "embeddings"]},
        )
        memories = self._memories_from_get(result)
        logger.debug(f"search_by_tag returned {len(memories)} results (tags={tags})")
        return memories

    async def delete(self, content_hash: str) -> tuple[bool, str]:
        if not await self.exists(content_hash):
            return False, f"No memory found with hash: {content_hash}"

        await self._collection_call("delete", "Delete memory", {"ids": [content_hash]})

        logger.debug(f"Deleted memory {content_hash[:8]}...")
        return True, f"Successfully deleted memory with hash: {content_hash}"

    async def get_by_hash(self, content_hash: str) -> Memory | None:
        result = await self._collection_call(
            "get",
            "Get memory",
            {"ids": [content_hash], "include": ["metadatas", "documents", "embeddings"]},
        )
        memories = self._memories_from_get(result)
        return memories[0] if memories else None

    async def count(self) -> int:
        result = await self._request("GET", f"/collections/{self.collection_name}/count", "Count memories")
        if not isinstance(result, int) or isinstance(result, bool):
            raise TransportError(f"Count memories failed: expected an integer, got {type(result).__name__}")
        return result

    def _memories_from_get(self, result: dict[str, Any]) -> list[Memory]:
        """Decode the flat (non-nested) arrays of a get response."""
        ids = _list_field(result, "ids")
        documents = _list_field(result, "documents")
        metadatas = _list_field(result, "metadatas")
        embeddings = _list_field(result, "embeddings")

        if ids is None or documents is None or metadatas is None:
            return []

        memories = []
        for i, object_id in enumerate(ids):
            memory = _decode_row(object_id, _item(documents, i), _item(metadatas, i), _item(embeddings, i))
            if memory is not None:
                memories.append(memory)
        return memories
