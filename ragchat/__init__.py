"""ragchat - retrieval-augmented chat over per-owner document collections."""

from .chat_repository import ChatRepository
from .document_processing import DocumentLoader, TextChunker
from .embeddings import EmbeddingService
from .errors import (
    ConversationNotFoundError,
    InteractionError,
    ModelError,
    RagChatError,
)
from .expansion import QueryExpansionStage
from .ingestion import DocumentIngestor, IngestionReport
from .llm import ChatModel
from .memory import ConversationMemory
from .models import (
    ConversationTurn,
    Document,
    RequestContext,
    Role,
    StreamEvent,
)
from .pipeline import ChatPipeline
from .rag import RAGStage, sanitize_namespace
from .reranker import BM25Reranker
from .retriever import VectorRetriever
from .text import detect_language, tokenize
from .vector_store import FaissVectorStore, get_vector_store

__all__ = [
    "BM25Reranker",
    "ChatModel",
    "ChatPipeline",
    "ChatRepository",
    "ConversationMemory",
    "ConversationNotFoundError",
    "ConversationTurn",
    "Document",
    "DocumentIngestor",
    "DocumentLoader",
    "EmbeddingService",
    "FaissVectorStore",
    "IngestionReport",
    "InteractionError",
    "ModelError",
    "QueryExpansionStage",
    "RAGStage",
    "RagChatError",
    "RequestContext",
    "Role",
    "StreamEvent",
    "TextChunker",
    "VectorRetriever",
    "detect_language",
    "get_vector_store",
    "sanitize_namespace",
    "tokenize",
]
