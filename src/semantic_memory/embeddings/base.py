"""
Embedding generator interface.

The storage layer consumes embeddings through this contract only; how a
vector is produced is up to the concrete generator.
"""

from abc import ABC, abstractmethod


class EmbeddingError(Exception):
    """Base class for embedding generation failures."""

    pass


class ModelNotFoundError(EmbeddingError):
    """Configured model files could not be found."""

    pass


class ModelLoadError(EmbeddingError):
    """The embedding model could not be loaded."""

    pass


class InferenceError(EmbeddingError):
    """The model failed to produce a usable vector."""

    pass


class EmbeddingGenerator(ABC):
    """Produces fixed-length float vectors from text."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable generator name, reported in health output."""
        pass

    @property
    @abstractmethod
    def embedding_size(self) -> int:
        """Length of every vector this generator returns."""
        pass

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """
        Generate an embedding for *text*.

        Returns:
            List of exactly ``embedding_size`` floats

        Raises:
            EmbeddingError: If no vector can be produced
        """
        pass
