"""Document ingestion: Load -> Hash -> Split -> Embed -> Store, on a bounded pool."""

from __future__ import annotations

import hashlib
import sqlite3
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .config import config
from .document_processing import DocumentLoader, TextChunker
from .rag import sanitize_namespace

if TYPE_CHECKING:
    from .embeddings import EmbeddingService
    from .vector_store import FaissVectorStore

logger = config.get_logger(__name__)


def compute_content_hash(file_path: Path) -> str:
    """Compute the MD5 hex digest of a file's bytes.

    Returns:
        Lower-case hex digest used as the idempotency key with the filename.
    """
    digest = hashlib.md5(usedforsecurity=False)
    with file_path.open("rb") as file:
        for block in iter(lambda: file.read(65536), b""):
            digest.update(block)
    return digest.hexdigest()


def document_type_for(file_path: Path) -> str:
    return file_path.suffix.lstrip(".").lower() or "unknown"


def default_namespace(file_path: Path) -> str:
    """Namespace for files in a shared knowledge base: the lower-cased file stem.

    Returns:
        The sanitized stem, so that it matches a sanitized principal.
    """
    return sanitize_namespace(file_path.stem)


@dataclass
class IngestionReport:
    """Outcome of ingesting a batch of files."""

    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    chunk_count: int = 0

    @property
    def total(self) -> int:
        return len(self.processed) + len(self.skipped) + len(self.failed)


class DocumentIngestor:
    """Indexes files into the namespaced vector store.

    A file whose ``(filename, content_hash)`` pair is already in the ledger is
    skipped, so re-running ingestion over an unchanged directory is a no-op.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: FaissVectorStore,
        chunker: TextChunker | None = None,
        max_workers: int | None = None,
    ) -> None:
        """Initialize the ingestor.

        Args:
            embedding_service: Embeds chunk texts in batches.
            vector_store: Destination index and processed-document ledger.
            chunker: Text splitter. If None, uses configured chunk size/overlap.
            max_workers: Pool size. If None, uses config.INGEST_MAX_WORKERS.

        Raises:
            ValueError: If the pool size is not positive.
        """
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.chunker = chunker or TextChunker()
        self.max_workers = config.INGEST_MAX_WORKERS if max_workers is None else max_workers
        if self.max_workers < 1:
            msg = f"max_workers must be positive, got {self.max_workers}"
            raise ValueError(msg)
        self._background = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="ragchat-ingest"
        )

    def already_processed(self, filename: str, content_hash: str) -> bool:
        return self.vector_store.is_document_processed(filename, content_hash)

    def _ingest_one(self, file_path: Path, namespace: str | None) -> int | None:
        """Index one file without persisting the FAISS index.

        Returns:
            Number of chunks indexed, or None if the file was already processed.
        """
        content_hash = compute_content_hash(file_path)
        if self.already_processed(file_path.name, content_hash):
            logger.info("Skipping already processed document %s", file_path.name)
            return None

        target = sanitize_namespace(namespace) if namespace else default_namespace(file_path)
        if not target:
            msg = f"Cannot derive a namespace for {file_path.name}"
            raise ValueError(msg)

        text = DocumentLoader.load_document(file_path)
        chunks = self.chunker.chunk_text(text, source=file_path.name, namespace=target)
        if not chunks:
            logger.warning("No chunks generated for document %s", file_path.name)
            return 0

        embeddings = self.embedding_service.embed_batch(
            [chunk.content for chunk in chunks]
        )
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            chunk.embedding = embedding

        try:
            return self.vector_store.add_document(
                file_path.name,
                content_hash,
                chunks,
                namespace=target,
                document_type=document_type_for(file_path),
            )
        except sqlite3.IntegrityError:
            # Another worker indexed the same (filename, content) first
            logger.info("Document %s was indexed concurrently", file_path.name)
            return None

    def ingest_file(self, file_path: Path, namespace: str | None = None) -> int | None:
        """Index a single file and persist the index.

        Args:
            file_path: PDF, TXT or Markdown file.
            namespace: Owner namespace. If None, the lower-cased file stem.

        Returns:
            Number of chunks indexed, or None if the file was already processed.
        """
        logger.info("Starting ingestion for document: %s", file_path)
        result = self._ingest_one(Path(file_path), namespace)
        if result:
            self.vector_store.save()
        return result

    def ingest_directory(
        self, directory: Path | None = None, namespace: str | None = None
    ) -> IngestionReport:
        """Index every supported file under a directory on the bounded pool.

        A failing file is recorded in the report and does not stop the others.

        Args:
            directory: Root to scan recursively. If None, uses
                config.KNOWLEDGE_BASE_DIR.
            namespace: Namespace for all files. If None, each file uses its
                own lower-cased stem.

        Returns:
            Report of processed, skipped and failed files.
        """
        root = Path(directory if directory is not None else config.KNOWLEDGE_BASE_DIR)
        report = IngestionReport()
        if not root.is_dir():
            logger.warning("Knowledge base directory %s does not exist", root)
            return report

        paths = sorted(
            p for p in root.rglob("*") if p.is_file() and DocumentLoader.is_supported(p)
        )
        logger.info(
            "Ingesting %d documents from %s (workers=%d)",
            len(paths),
            root,
            self.max_workers,
        )

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            future_map = {
                pool.submit(self._ingest_one, path, namespace): path for path in paths
            }
            for future in as_completed(future_map):
                path = future_map[future]
                try:
                    chunk_count = future.result()
                except Exception as e:
                    logger.exception("Failed to process document %s", path.name)
                    report.failed[str(path)] = str(e)
                    continue
                if chunk_count:
                    report.processed.append(str(path))
                    report.chunk_count += chunk_count
                else:
                    report.skipped.append(str(path))

        if report.processed:
            self.vector_store.save()

        logger.info(
            "Ingestion finished: %d processed, %d skipped, %d failed, %d chunks",
            len(report.processed),
            len(report.skipped),
            len(report.failed),
            report.chunk_count,
        )
        return report

    def submit_directory(
        self, directory: Path | None = None, namespace: str | None = None
    ) -> Future[IngestionReport]:
        """Run ``ingest_directory`` in the background.

        Returns:
            A future for the report; callers may wait on it or ignore it.
        """
        return self._background.submit(self.ingest_directory, directory, namespace)

    def shutdown(self, *, wait: bool = True) -> None:
        self._background.shutdown(wait=wait)
