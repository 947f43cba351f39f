"""Document loading and text chunking functionality."""

from pathlib import Path

import pypdf

from .config import config
from .models import Document

logger = config.get_logger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".pdf", ".txt", ".md"})


class DocumentLoader:
    """Handles loading of PDF, TXT and Markdown documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
            logger.info("Loaded %d pages from %s", len(pages), file_path.name)
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            return "\n".join(pages)

    @staticmethod
    def load_text(file_path: Path) -> str:
        """Load a plain-text or Markdown file as UTF-8.

        Returns:
            The file content.
        """
        try:
            text = file_path.read_text(encoding="utf-8")
        except Exception:
            logger.exception("Error loading text file %s", file_path)
            raise
        else:
            return text

    @staticmethod
    def is_supported(file_path: Path) -> bool:
        return file_path.suffix.lower() in SUPPORTED_EXTENSIONS

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext in {".txt", ".md"}:
            return cls.load_text(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


class TextChunker:
    """Fixed-length chunking with overlap, snapped back to word boundaries."""

    def __init__(
        self,
        chunk_size: int | None = None,
        overlap: int | None = None,
        max_chunks: int | None = None,
    ) -> None:
        """Initialize the TextChunker.

        Args:
            chunk_size: Characters per chunk. If None, uses config.CHUNK_SIZE.
            overlap: Characters shared by neighbouring chunks. If None, uses
                config.CHUNK_OVERLAP.
            max_chunks: Upper bound on chunks per document, None for no bound.

        Raises:
            ValueError: If overlap is not smaller than chunk size.
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.overlap = config.CHUNK_OVERLAP if overlap is None else overlap
        self.max_chunks = max_chunks
        if self.chunk_size <= 0 or not 0 <= self.overlap < self.chunk_size:
            msg = (
                f"Invalid chunking parameters: chunk_size={self.chunk_size}, "
                f"overlap={self.overlap}"
            )
            raise ValueError(msg)

    def chunk_text(
        self, text: str, source: str = "document", namespace: str | None = None
    ) -> list[Document]:
        """Split text into overlapping chunks tagged with source and namespace.

        Returns:
            Chunk documents in text order, without embeddings.
        """
        chunks: list[Document] = []
        start = 0

        while start < len(text):
            if self.max_chunks is not None and len(chunks) >= self.max_chunks:
                logger.warning(
                    "Chunk limit %d reached for %s; remaining text ignored",
                    self.max_chunks,
                    source,
                )
                break

            end = start + self.chunk_size
            piece = text[start:end]

            # Don't cut a word in half unless that leaves a tiny chunk
            if end < len(text) and not piece.endswith(" "):
                last_space = piece.rfind(" ")
                if last_space > self.chunk_size // 2:
                    end = start + last_space
                    piece = text[start:end]

            content = piece.strip()
            if content:
                metadata = {
                    "source": source,
                    "chunk_id": len(chunks),
                    "start_char": start,
                    "end_char": end,
                    "length": len(content),
                }
                if namespace is not None:
                    metadata["namespace"] = namespace
                chunks.append(Document(content=content, metadata=metadata))

            if end >= len(text):
                break
            start = max(end - self.overlap, start + 1)

        logger.info("Text from %s split into %d chunks", source, len(chunks))
        return chunks
