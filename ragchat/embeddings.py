"""Embedding collaborator backed by an OpenAI-compatible embeddings API."""

import numpy as np
from openai import OpenAI, OpenAIError

from .config import config

logger = config.get_logger(__name__)


class EmbeddingService:
    """Turns text into float32 embedding vectors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        """Initialize the EmbeddingService with API key and model.

        Args:
            api_key: API key. If None, reads from OPENAI_API_KEY environment variable.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
        """
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.EMBEDDING_MODEL

    def embed(self, text: str) -> np.ndarray:
        """Embed a single text, typically a search query.

        Returns:
            np.ndarray: The embedding vector for the input text.
        """
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except OpenAIError:
            logger.exception("Error generating embedding")
            raise
        return np.asarray(response.data[0].embedding, dtype=np.float32)

    def embed_batch(
        self,
        texts: list[str],
        batch_size: int = 100,
    ) -> list[np.ndarray]:
        """Embed document chunks in batches, preserving input order.

        Args:
            texts: Chunk texts to embed.
            batch_size: Number of texts sent per API request.

        Returns:
            One embedding per input text.
        """
        embeddings: list[np.ndarray] = []

        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except OpenAIError:
                logger.exception(
                    "Error embedding batch %d of %d texts",
                    start // batch_size + 1,
                    len(texts),
                )
                raise
            embeddings.extend(
                np.asarray(item.embedding, dtype=np.float32) for item in response.data
            )
            logger.debug("Embedded batch %d", start // batch_size + 1)

        return embeddings
