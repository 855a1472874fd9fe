from .base import ConfigurationError, MemoryStorage, StorageError, TransportError
from .chroma import ChromaStorage
from .memory import InMemoryStorage

__all__ = [
    "ChromaStorage",
    "ConfigurationError",
    "InMemoryStorage",
    "MemoryStorage",
    "StorageError",
    "TransportError",
]
