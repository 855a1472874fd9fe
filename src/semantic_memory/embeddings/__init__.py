from .base import EmbeddingError, EmbeddingGenerator, InferenceError, ModelLoadError, ModelNotFoundError
from .dummy import DummyEmbeddingGenerator

__all__ = [
    "DummyEmbeddingGenerator",
    "EmbeddingError",
    "EmbeddingGenerator",
    "InferenceError",
    "ModelLoadError",
    "ModelNotFoundError",
]
