"""Deterministic placeholder embeddings for tests and model-less deployments."""

import math

from ..utils.similarity import l2_normalize
from .base import EmbeddingGenerator


class DummyEmbeddingGenerator(EmbeddingGenerator):
    """
    Derives a unit vector from the byte length of the text.

    Texts of equal length map to the same vector, so this is only useful as a
    stand-in where semantic quality does not matter.
    """

    def __init__(self, embedding_size: int = 384):
        if embedding_size < 1:
            raise ValueError(f"embedding_size must be positive, got {embedding_size}")
        self._embedding_size = embedding_size

    @property
    def name(self) -> str:
        return "dummy"

    @property
    def embedding_size(self) -> int:
        return self._embedding_size

    async def generate_embedding(self, text: str) -> list[float]:
        text_len = len(text.encode("utf-8"))
        embedding = [math.sin(i * 0.1 + text_len * 0.01) * 0.5 for i in range(self._embedding_size)]
        return l2_normalize(embedding)
