"""
Content hashing for memory deduplication.

The hash is the identity of a memory and doubles as its storage key, so it
must be identical across processes and backends for equal input.
"""

import hashlib
import json
from collections.abc import Mapping

# Volatile keys never take part in the identity of a memory
RESERVED_METADATA_KEYS = frozenset({"timestamp", "content_hash", "embedding"})


def filter_metadata(metadata: Mapping[str, str] | None) -> dict[str, str]:
    """Return a copy of *metadata* without the reserved keys."""
    if not metadata:
        return {}
    return {k: v for k, v in metadata.items() if k not in RESERVED_METADATA_KEYS}


def generate_content_hash(content: str, metadata: Mapping[str, str] | None = None) -> str:
    """
    Generate a SHA-256 content hash from normalized content and metadata.

    Content is trimmed and lower-cased; metadata is filtered of reserved keys
    and serialized as compact JSON with sorted keys so that insertion order
    never changes the result.

    Args:
        content: Raw memory content
        metadata: User metadata (reserved keys are ignored)

    Returns:
        Lowercase hex digest (64 characters)
    """
    normalized = content.strip().lower()
    canonical = json.dumps(filter_metadata(metadata), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    digest = hashlib.sha256()
    digest.update(normalized.encode("utf-8"))
    digest.update(canonical.encode("utf-8"))
    return digest.hexdigest()
