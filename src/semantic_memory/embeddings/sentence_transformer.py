"""
Sentence-transformers embedding generator.

The model is loaded lazily on first use and inference runs in the default
executor so the event loop is never blocked by tokenisation or the forward
pass.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any

from .base import EmbeddingGenerator, InferenceError, ModelLoadError, ModelNotFoundError

logger = logging.getLogger(__name__)


class SentenceTransformerEmbeddingGenerator(EmbeddingGenerator):
    """Embeddings from a sentence-transformers model (hub name or local directory)."""

    def __init__(self, model_name: str, embedding_size: int, model_path: Path | str | None = None):
        """
        Args:
            model_name: Hub model identifier, used when no local path is given
            embedding_size: Expected vector length; mismatching output is rejected
            model_path: Optional local model directory

        Raises:
            ModelNotFoundError: If model_path is given but does not exist
        """
        self.model_name = model_name
        self.model_path = Path(model_path) if model_path is not None else None
        self._embedding_size = embedding_size

        if self.model_path is not None and not self.model_path.exists():
            raise ModelNotFoundError(f"Model path not found: {self.model_path}")

        self._model: Any = None
        # Thread-safe model loading (executor threads may race on first use)
        self._model_lock = threading.Lock()

        logger.info(f"Configured sentence-transformers generator: model={self._model_source}, size={embedding_size}")

    @property
    def _model_source(self) -> str:
        return str(self.model_path) if self.model_path is not None else self.model_name

    @property
    def name(self) -> str:
        return f"sentence-transformers:{self._model_source}"

    @property
    def embedding_size(self) -> int:
        return self._embedding_size

    def _load_model(self) -> Any:
        if self._model is None:
            with self._model_lock:
                # Double-check after acquiring lock (another thread may have loaded it)
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer
                    except ImportError as e:
                        raise ModelLoadError(
                            "sentence-transformers not installed. Install with: pip install 'semantic-memory-service[embeddings]'"
                        ) from e

                    logger.info(f"Loading embedding model: {self._model_source}")
                    try:
                        self._model = SentenceTransformer(self._model_source)
                    except Exception as e:
                        raise ModelLoadError(f"Failed to load model {self._model_source}: {e}") from e
                    logger.info(f"Loaded model: {self._model_source}")
        return self._model

    def _encode(self, text: str) -> list[float]:
        model = self._load_model()
        try:
            embeddings = model.encode(text, convert_to_tensor=False)
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e.__class__.__name__}: {e}")
            raise InferenceError(f"Embedding generation failed: {e}") from e

        embedding_list = embeddings.tolist() if hasattr(embeddings, "tolist") else list(embeddings)
        if len(embedding_list) != self._embedding_size:
            raise InferenceError(
                f"Model {self._model_source} produced {len(embedding_list)} dimensions, "
                f"expected {self._embedding_size}. Set MCP_MEMORY_EMBEDDING_SIZE to match the model."
            )
        return [float(x) for x in embedding_list]

    async def generate_embedding(self, text: str) -> list[float]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._encode, text)
