"""
Configuration for the Semantic Memory Service.

Every setting is read from the environment (and an optional ``.env`` file)
through pydantic-settings. Each concern has its own settings class with its
own ``MCP_*`` prefix; ``Settings`` aggregates them into the module-level
``settings`` object.

Unrecognised backend or model names and unparsable embedding sizes never stop
startup: they are logged and replaced by the defaults.
"""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

StorageBackendName = Literal["memory", "chromadb"]
EmbeddingModelName = Literal["dummy", "sentence-transformers"]
TransportMode = Literal["stdio", "http"]

DEFAULT_EMBEDDING_SIZE = 384

# Accepted spellings for the embedding model; "onnx" selects the local-model generator
_EMBEDDING_MODEL_ALIASES = {
    "dummy": "dummy",
    "sentence-transformers": "sentence-transformers",
    "sentence_transformers": "sentence-transformers",
    "onnx": "sentence-transformers",
}


class StorageSettings(BaseSettings):
    """Backend selection (MCP_MEMORY_STORAGE_*)."""

    model_config = SettingsConfigDict(env_prefix="MCP_MEMORY_STORAGE_", env_file=".env", extra="ignore")

    backend: StorageBackendName = "memory"

    @field_validator("backend", mode="before")
    @classmethod
    def resolve_backend(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        name = v.strip().lower()
        if name not in ("memory", "chromadb"):
            logger.warning(f"Unknown storage backend '{v}', using in-memory storage")
            return "memory"
        return name


class ChromaSettings(BaseSettings):
    """Remote vector database settings (MCP_MEMORY_CHROMA_*)."""

    model_config = SettingsConfigDict(env_prefix="MCP_MEMORY_CHROMA_", env_file=".env", extra="ignore")

    url: str = "http://localhost:8000"
    collection: str = "memory_collection"
    api_path: str = "/api/v1"
    timeout: float = Field(default=30.0, gt=0.0)


class EmbeddingSettings(BaseSettings):
    """Embedding generator settings (MCP_MEMORY_EMBEDDING_*)."""

    model_config = SettingsConfigDict(env_prefix="MCP_MEMORY_EMBEDDING_", env_file=".env", extra="ignore")

    model: EmbeddingModelName = "dummy"
    model_name: str = "all-MiniLM-L6-v2"
    model_path: Path | None = None
    size: int = Field(default=DEFAULT_EMBEDDING_SIZE, ge=1)

    @field_validator("model", mode="before")
    @classmethod
    def resolve_model(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        model = _EMBEDDING_MODEL_ALIASES.get(v.strip().lower())
        if model is None:
            logger.warning(f"Unknown embedding model '{v}', using dummy embeddings")
            return "dummy"
        return model

    @field_validator("size", mode="before")
    @classmethod
    def parse_size(cls, v: object) -> object:
        if isinstance(v, int) and not isinstance(v, bool):
            size = v
        else:
            try:
                size = int(str(v).strip())
            except ValueError:
                logger.warning(f"Ignoring unparsable embedding size '{v}', using {DEFAULT_EMBEDDING_SIZE}")
                return DEFAULT_EMBEDDING_SIZE
        if size < 1:
            logger.warning(f"Ignoring non-positive embedding size {size}, using {DEFAULT_EMBEDDING_SIZE}")
            return DEFAULT_EMBEDDING_SIZE
        return size


class ServerSettings(BaseSettings):
    """Tool transport settings (MCP_SERVER_*)."""

    model_config = SettingsConfigDict(env_prefix="MCP_SERVER_", env_file=".env", extra="ignore")

    transport: TransportMode = "stdio"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)


class Settings(BaseSettings):
    """Top-level settings; nested groups read their own prefixes."""

    model_config = SettingsConfigDict(env_prefix="MCP_MEMORY_", env_file=".env", extra="ignore")

    log_level: str = "INFO"

    storage: StorageSettings = Field(default_factory=StorageSettings)
    chroma: ChromaSettings = Field(default_factory=ChromaSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: object) -> object:
        return v.strip().upper() if isinstance(v, str) else v


settings = Settings()
