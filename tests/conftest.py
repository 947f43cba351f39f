"""Test configuration and fixtures for ragchat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService and ChatModel fixtures
- Text processing fixtures
- Vector store, repository and memory fixtures
- Sample data factories
"""

import hashlib
from contextlib import contextmanager
from unittest.mock import MagicMock, Mock, create_autospec, patch

import numpy as np
import pytest

from ragchat import (
    ChatModel,
    ChatRepository,
    ConversationMemory,
    Document,
    EmbeddingService,
    FaissVectorStore,
    TextChunker,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files.

    All test constants are defined here to maintain consistency across
    the test suite and make it easy to update values globally.
    """

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_OPENAI_MODEL = "text-embedding-3-small"
    TEST_CHAT_MODEL = "test-chat-model"
    DEFAULT_EMBEDDING_DIMENSION = 64

    # Text Chunking Configuration
    SMALL_CHUNK_SIZE = 100
    SMALL_CHUNK_OVERLAP = 20
    DEFAULT_CHUNK_SIZE = 500
    DEFAULT_CHUNK_OVERLAP = 100

    # Principals
    TEST_PRINCIPAL = "alice"
    OTHER_PRINCIPAL = "bob"


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(
        self, dimension: int = TestConstants.DEFAULT_EMBEDDING_DIMENSION
    ) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    def embed(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return (embedding / np.linalg.norm(embedding)).astype(np.float32)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        return [self.embed(text) for text in texts]


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response.

    Args:
        embeddings: List of embedding vectors to return.

    Returns:
        Mock object representing OpenAI embeddings API response.
    """
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def create_mock_stream_chunk(content: str | None) -> Mock:
    """Create one chunk of a streamed chat completion."""  # noqa: DOC201
    chunk = Mock()
    chunk.choices = [Mock(delta=Mock(content=content))]
    return chunk


def make_document(content: str, score: float = 0.9, **metadata) -> Document:
    """Build a retrieved chunk the way the vector store returns it."""  # noqa: DOC201
    return Document(
        content=content,
        metadata={"source": "doc.txt", "namespace": "alice", **metadata},
        score=score,
    )


def token_stream(*tokens: str):  # noqa: ANN201
    """Generator standing in for ChatModel.stream."""
    yield from tokens


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch OpenAI embeddings.create and return the mock directly."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def embedding_service_factory():
    """Factory for creating EmbeddingService instances with different configurations."""

    def _create_service(api_key=None, model=None):  # noqa: ANN202
        api_key = api_key or TestConstants.TEST_API_KEY
        if model is not None:
            return EmbeddingService(api_key=api_key, model=model)
        return EmbeddingService(api_key=api_key)

    return _create_service


@pytest.fixture
def embedding_service(embedding_service_factory):
    """Default EmbeddingService with test API key for most tests."""
    return embedding_service_factory()


@pytest.fixture
def chat_model():
    """Real ChatModel client pointed at a test model; patch its client per test."""
    return ChatModel(
        api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_CHAT_MODEL,
        max_tokens=64,
    )


@pytest.fixture
def mock_chat_model():
    """Autospec ChatModel with a canned answer."""
    model = create_autospec(ChatModel, instance=True)
    model.complete.return_value = "Test response"
    model.stream.side_effect = lambda *_args, **_kwargs: token_stream("Test", " response")
    return model


@pytest.fixture
def text_chunker_small():
    """Text chunker configured for small chunks (100/20)."""
    return TextChunker(
        chunk_size=TestConstants.SMALL_CHUNK_SIZE,
        overlap=TestConstants.SMALL_CHUNK_OVERLAP,
    )


@pytest.fixture
def text_chunker_default():
    """Text chunker configured with default settings (500/100)."""
    return TextChunker(
        chunk_size=TestConstants.DEFAULT_CHUNK_SIZE,
        overlap=TestConstants.DEFAULT_CHUNK_OVERLAP,
    )


@pytest.fixture
def mock_embedding_service():
    """Pre-configured MockEmbeddingService for consistent test embeddings."""
    return MockEmbeddingService()


@pytest.fixture
def mock_embeddings(mock_embedding_service):
    """Factory function to create mock embeddings using the service."""
    return mock_embedding_service.embed


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    """Create temporary FAISS vector store for testing."""
    return FaissVectorStore(
        db_path=tmp_path / "test_store.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture
def chat_repository(tmp_path) -> ChatRepository:
    """Chat repository on a temporary SQLite file."""
    return ChatRepository(db_path=tmp_path / "chats.db")


@pytest.fixture
def memory_factory(chat_repository):
    """Factory for ConversationMemory instances over the temporary repository."""

    def _create_memory(max_messages: int = 8) -> ConversationMemory:
        return ConversationMemory(chat_repository, max_messages=max_messages)

    return _create_memory


@pytest.fixture
def conversation_id(chat_repository) -> str:
    """Id of a freshly created, empty conversation."""
    return chat_repository.create_chat("Test chat").id


@pytest.fixture
def sample_text_chunks():
    """Create sample document chunks with text and metadata only (no embeddings)."""
    texts = [
        "Machine learning is a subset of artificial intelligence.",
        "Neural networks are computational models inspired by the brain.",
        "Deep learning uses multiple layers to learn complex patterns.",
        "Supervised learning uses labeled training data.",
        "Unsupervised learning finds patterns in unlabeled data.",
    ]
    return [
        Document(
            content=text,
            metadata={
                "source": "ml_notes.txt",
                "chunk_id": i,
                "start_char": i * 100,
                "end_char": (i + 1) * 100,
                "length": len(text),
            },
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def sample_embedded_chunks(sample_text_chunks, mock_embeddings):
    """Create sample document chunks with embeddings based on text chunks."""
    return [
        Document(
            content=chunk.content,
            metadata=dict(chunk.metadata),
            embedding=mock_embeddings(chunk.content),
        )
        for chunk in sample_text_chunks
    ]


@pytest.fixture
def knowledge_base_dir(tmp_path):
    """Temporary knowledge base with two owner files and one unsupported file."""
    kb = tmp_path / "knowledgebase"
    kb.mkdir()
    (kb / "Alice.txt").write_text(
        "Alice keeps her notes about database indexing and B-trees here. " * 5,
        encoding="utf-8",
    )
    (kb / "bob.md").write_text(
        "# Bob\n\nBob writes about cooking pasta and tomato sauce. " * 5,
        encoding="utf-8",
    )
    (kb / "ignored.csv").write_text("a,b,c\n1,2,3\n", encoding="utf-8")
    return kb


@pytest.fixture
def document_factory():
    """Factory for retrieved chunk documents."""
    return make_document


@pytest.fixture
def chat_completion_mock_factory():
    """Factory mock fixture for ChatModel's client.chat.completions.create."""

    @contextmanager
    def _mock_chat_completions(  # noqa: ANN202
        chat_model,
        content: str | None = "Test response",
        side_effect=None,
        stream_tokens=None,
    ):
        with patch.object(chat_model.client.chat.completions, "create") as mock_create:
            if side_effect is not None:
                mock_create.side_effect = side_effect
            elif stream_tokens is not None:
                stream = MagicMock()
                stream.__enter__.return_value = [
                    create_mock_stream_chunk(token) for token in stream_tokens
                ]
                stream.__exit__.return_value = False
                mock_create.return_value = stream
            else:
                mock_create.return_value = create_mock_chat_response(content)
            yield mock_create

    return _mock_chat_completions


@pytest.fixture
def embeddings_response_factory():
    """Factory for OpenAI embeddings API responses."""
    return create_mock_openai_response
