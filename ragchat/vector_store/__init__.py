"""Vector store adapters and factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ragchat.config import config

from .faiss_store import FaissVectorStore

if TYPE_CHECKING:
    from pathlib import Path


def get_vector_store(
    *,
    db_path: Path | None = None,
    index_path: Path | None = None,
    raw_top_k_multiplier: int | None = None,
    load: bool = True,
) -> FaissVectorStore:
    """Return a configured vector store, loading any persisted index.

    Returns:
        A FaissVectorStore bound to the configured paths.
    """
    store = FaissVectorStore(
        db_path=db_path if db_path is not None else config.VECTOR_STORE_DB_PATH,
        index_path=index_path if index_path is not None else config.FAISS_INDEX_PATH,
        raw_top_k_multiplier=(
            raw_top_k_multiplier
            if raw_top_k_multiplier is not None
            else config.RAG_SEARCH_MULTIPLIER
        ),
    )
    if load:
        store.load()
    return store


__all__ = ["FaissVectorStore", "get_vector_store"]
