"""
Embedding generator factory.

Builds the configured generator; a sentence-transformers generator that
cannot be constructed degrades to the deterministic dummy generator.
"""

import logging

from ..config import EmbeddingSettings
from .base import EmbeddingError, EmbeddingGenerator
from .dummy import DummyEmbeddingGenerator
from .sentence_transformer import SentenceTransformerEmbeddingGenerator

logger = logging.getLogger(__name__)


def create_embedding_generator(config: EmbeddingSettings | None = None) -> EmbeddingGenerator:
    """
    Create the embedding generator selected by configuration.

    Args:
        config: Embedding settings (defaults to the global settings)

    Returns:
        Ready-to-use EmbeddingGenerator
    """
    if config is None:
        from ..config import settings

        config = settings.embedding

    if config.model == "sentence-transformers":
        logger.info("Attempting to initialize sentence-transformers embedding generator...")
        try:
            generator = SentenceTransformerEmbeddingGenerator(
                model_name=config.model_name,
                embedding_size=config.size,
                model_path=config.model_path,
            )
            logger.info(f"Using embedding generator {generator.name} (size {generator.embedding_size})")
            return generator
        except EmbeddingError as e:
            logger.error(f"Failed to initialize sentence-transformers embedding generator: {e}")
            logger.warning("Falling back to dummy embedding generator.")

    logger.info(f"Using dummy embedding generator with size {config.size}")
    return DummyEmbeddingGenerator(config.size)
