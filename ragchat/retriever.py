"""Vector retrieval: embed a text query and search the namespaced index."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from .embeddings import EmbeddingService
    from .models import Document
    from .vector_store import FaissVectorStore

logger = config.get_logger(__name__)


class VectorRetriever:
    """Approximate nearest-neighbour search over document chunk embeddings."""

    def __init__(
        self, embedding_service: EmbeddingService, vector_store: FaissVectorStore
    ) -> None:
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    def similarity_search(
        self,
        query: str,
        top_k: int,
        similarity_threshold: float,
        namespace_filter: str,
    ) -> list[Document]:
        """Return up to ``top_k`` chunks of one namespace most similar to the query.

        Results are already filtered by the threshold and sorted by descending
        cosine similarity.

        Returns:
            Fresh Document instances carrying their similarity ``score``.
        """
        query_embedding = self.embedding_service.embed(query)
        documents = self.vector_store.search(
            query_embedding,
            top_k=top_k,
            similarity_threshold=similarity_threshold,
            namespace=namespace_filter,
        )

        for i, doc in enumerate(documents):
            logger.debug(
                "  Candidate %d: %s (similarity: %.4f)", i + 1, doc.source, doc.score
            )
        logger.info(
            "Vector search returned %d of %d requested candidates", len(documents), top_k
        )
        return documents
