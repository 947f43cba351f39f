"""FAISS-backed vector storage with SQLite metadata."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from ragchat.config import config
from ragchat.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from ragchat.models import Document

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Cosine-similarity index in FAISS, chunk metadata and namespaces in SQLite.

    FAISS has no metadata filter, so namespace-scoped searches over-fetch
    (``raw_top_k_multiplier``) and widen the window until enough in-namespace
    hits are found, the index is exhausted, or scores fall below the threshold.
    """

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/vector_store.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
        raw_top_k_multiplier: int = 2,
    ) -> None:
        """Configure FAISS-backed vector store."""
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)
        self._lock = threading.RLock()

        super().__init__(db_path)

    @staticmethod
    def _normalize_embedding(embedding: np.ndarray) -> np.ndarray:
        """Normalize embedding for cosine similarity using inner product search.

        Returns:
            Normalized float32 embedding vector.
        """
        vector = np.array(embedding, dtype="float32")
        if np.linalg.norm(vector) == 0:
            return vector
        faiss.normalize_L2(vector.reshape(1, -1))
        return vector

    def _init_index(self, dimension: int) -> None:
        """Initialize an empty inner-product index with explicit ids."""
        self.index = faiss.IndexIDMap(faiss.IndexFlatIP(dimension))
        logger.info("Initialized FAISS IndexIDMap with dimension %d", dimension)

    def add_document(  # noqa: PLR0913
        self,
        filename: str,
        content_hash: str,
        chunks: list[Document],
        *,
        namespace: str,
        document_type: str = "unknown",
    ) -> int:
        """Index a processed file's chunks under a namespace.

        The ledger row, chunk rows and vectors are written together; if the
        vectors cannot be added the metadata transaction is rolled back.

        Raises:
            ValueError: If a chunk lacks an embedding or its dimension
                mismatches the index.

        Returns:
            Number of chunks indexed.
        """
        if not chunks:
            return 0

        vectors = []
        for chunk in chunks:
            if chunk.embedding is None:
                msg = f"Chunk {chunk.metadata.get('chunk_id')} of {filename} has no embedding"
                raise ValueError(msg)
            vectors.append(self._normalize_embedding(chunk.embedding))
        matrix = np.vstack(vectors).astype("float32")

        with self._lock, self._connect() as conn:
            if self.index is None:
                self._init_index(matrix.shape[1])
            elif matrix.shape[1] != self.index.d:
                msg = (
                    f"Embedding dimension {matrix.shape[1]} does not match "
                    f"FAISS index dimension {self.index.d}"
                )
                raise ValueError(msg)

            cursor = conn.cursor()
            document_id = self._insert_document(
                cursor, filename, content_hash, document_type, namespace, len(chunks)
            )
            vector_ids = []
            for chunk in chunks:
                vector_id = self._insert_chunk_row(cursor, document_id, chunk, namespace)
                chunk.metadata["vector_id"] = vector_id
                chunk.metadata["namespace"] = namespace
                vector_ids.append(vector_id)

            self.index.add_with_ids(matrix, np.asarray(vector_ids, dtype="int64"))  # pyright: ignore[reportCallIssue]

        logger.info(
            "Indexed %d chunks of %s into namespace %s", len(chunks), filename, namespace
        )
        return len(chunks)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 5,
        *,
        similarity_threshold: float = 0.0,
        namespace: str | None = None,
    ) -> list[Document]:
        """Search similar chunks, filtered by threshold and namespace.

        Returns:
            Up to ``top_k`` documents in descending similarity order.
        """
        if top_k <= 0:
            return []

        with self._lock:
            index = self.index
            if index is None or index.ntotal == 0:
                logger.warning("FAISS index is empty; returning no results")
                return []

            query = self._normalize_embedding(np.asarray(query_embedding)).reshape(1, -1)
            window = min(index.ntotal, top_k * self.raw_top_k_multiplier)

            while True:
                scores, vector_ids = index.search(query, window)  # pyright: ignore[reportCallIssue]
                hits, below_threshold = self._collect_hits(
                    scores[0], vector_ids[0], similarity_threshold, namespace
                )
                if len(hits) >= top_k or below_threshold or window >= index.ntotal:
                    break
                window = min(index.ntotal, window * 2)

        logger.debug(
            "Vector search returned %d hits (window=%d, namespace=%s)",
            len(hits),
            window,
            namespace,
        )
        return hits[:top_k]

    def _collect_hits(
        self,
        scores: np.ndarray,
        vector_ids: np.ndarray,
        similarity_threshold: float,
        namespace: str | None,
    ) -> tuple[list[Document], bool]:
        """Map raw FAISS results onto stored documents.

        Returns:
            Hits in score order, and whether the threshold cut the window short.
        """
        candidates: list[tuple[int, float]] = []
        below_threshold = False
        for score, vector_id in zip(scores, vector_ids, strict=True):
            if int(vector_id) == -1:  # faiss returns -1 for empty slots
                continue
            if float(score) < similarity_threshold:
                below_threshold = True
                break
            candidates.append((int(vector_id), float(score)))

        with self._connect() as conn:
            rows = self._fetch_rows_by_vector_ids(
                conn.cursor(), [vid for vid, _ in candidates], namespace
            )

        hits = [
            self._build_document_from_row(rows[vid], score=score)
            for vid, score in candidates
            if vid in rows
        ]
        return hits, below_threshold

    def save(self) -> None:
        """Persist FAISS index to disk."""
        with self._lock:
            index = self.index
            if index is None:
                logger.warning("No FAISS index to save")
                return

            self.index_path.parent.mkdir(exist_ok=True, parents=True)
            faiss.write_index(index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Load the FAISS index from disk if present.

        Ledger rows whose vectors never reached the saved index (a failed
        ``save()`` or a crash mid-batch) are dropped so those files are
        ingested again.
        """
        with self._lock:
            if not self.index_path.exists():
                logger.warning(
                    "FAISS index not found at %s. Start with an empty index.",
                    self.index_path,
                )
                self.index = None
                self._reconcile_ledger()
                return

            loaded_index = faiss.read_index(str(self.index_path))
            if not isinstance(loaded_index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
                logger.warning(
                    "Loaded FAISS index is %s; wrapping with IndexIDMap to enable IDs",
                    type(loaded_index).__name__,
                )
                loaded_index = faiss.IndexIDMap(loaded_index)
            self.index = loaded_index
            self._reconcile_ledger()

        logger.info(
            "Loaded FAISS index from %s with %d vectors (%d chunks in metadata)",
            self.index_path,
            loaded_index.ntotal,
            self.count_chunks(),
        )

    def _reconcile_ledger(self) -> None:
        """Make the metadata ledger agree with the vectors actually in the index."""
        index = self.index
        indexed: set[int] = set()
        if index is not None and index.ntotal:
            indexed = {int(vid) for vid in faiss.vector_to_array(index.id_map)}

        removed = self.prune_unindexed(indexed)
        if removed and index is not None:
            # Partially indexed documents leave vectors with no metadata row
            index.remove_ids(np.asarray(removed, dtype="int64"))
