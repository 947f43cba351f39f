"""Retrieval-augmentation stage: scoped vector search, BM25 rerank, prompt assembly."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .config import config
from .prompts import RAG_TEMPLATE
from .reranker import BM25Reranker

if TYPE_CHECKING:
    from .models import RequestContext
    from .retriever import VectorRetriever

logger = config.get_logger(__name__)

NO_CONTEXT_AVAILABLE = "Authentication required for document access"
NO_RELATED_DOCUMENTS = "Can't find any related documents"

MAX_NAMESPACE_LENGTH = 100
ANONYMOUS_PRINCIPALS = frozenset({"anonymousUser"})

_NAMESPACE_UNSAFE = re.compile(r"[^A-Za-z0-9_.@-]")


def sanitize_namespace(principal: str | None) -> str:
    """Reduce a principal name to a string that is safe inside a filter expression.

    Every character outside ``[A-Za-z0-9_.@-]`` is dropped (never escaped),
    the result is cut to 100 characters and lower-cased.

    Returns:
        The sanitized namespace, possibly empty.
    """
    if principal is None:
        return ""

    sanitized = _NAMESPACE_UNSAFE.sub("", principal)
    if len(sanitized) > MAX_NAMESPACE_LENGTH:
        logger.warning(
            "Namespace truncated for security: original length was %d", len(principal)
        )
        sanitized = sanitized[:MAX_NAMESPACE_LENGTH]
    return sanitized.lower()


class RAGStage:
    """Augment the outgoing user message with the principal's own documents."""

    def __init__(  # noqa: PLR0913
        self,
        retriever: VectorRetriever,
        reranker: BM25Reranker | None = None,
        *,
        top_k: int | None = None,
        similarity_threshold: float | None = None,
        search_multiplier: int | None = None,
        template: str = RAG_TEMPLATE,
    ) -> None:
        """Configure the stage.

        Args:
            retriever: Vector retriever over the namespaced index.
            reranker: Lexical reranker. Defaults to BM25 with configured k1/b.
            top_k: Documents kept after reranking. If None, uses config.RAG_TOP_K.
            similarity_threshold: Minimum cosine similarity. If None, uses
                config.RAG_SIMILARITY_THRESHOLD.
            search_multiplier: Oversampling factor for vector search. If None,
                uses config.RAG_SEARCH_MULTIPLIER.
            template: Prompt template with ``{context}`` and ``{question}``.
        """
        self.retriever = retriever
        self.reranker = reranker or BM25Reranker()
        self.top_k = config.RAG_TOP_K if top_k is None else top_k
        self.similarity_threshold = (
            config.RAG_SIMILARITY_THRESHOLD
            if similarity_threshold is None
            else similarity_threshold
        )
        self.search_multiplier = (
            config.RAG_SEARCH_MULTIPLIER
            if search_multiplier is None
            else search_multiplier
        )
        self.template = template

    @staticmethod
    def resolve_namespace(principal: str | None) -> str | None:
        """Turn the request principal into a namespace filter.

        Returns:
            The sanitized namespace, or None when retrieval must be skipped.
        """
        if principal is None or not principal.strip():
            return None
        if principal in ANONYMOUS_PRINCIPALS:
            return None
        return sanitize_namespace(principal) or None

    def process(self, context: RequestContext) -> RequestContext:
        """Retrieve, rerank and assemble context for the outgoing user message.

        Returns:
            The updated context. Without a usable principal or without matching
            documents only ``retrieval_context`` is set to a marker and the
            user message stays the literal question.
        """
        query = context.retrieval_query
        logger.info(
            "Processing RAG query with length: %d, enriched: %s",
            len(context.original_question),
            query != context.original_question,
        )

        namespace = self.resolve_namespace(context.principal)
        if namespace is None:
            logger.warning("No usable principal; skipping document retrieval")
            return context.with_updates(retrieval_context=NO_CONTEXT_AVAILABLE)

        candidates = self.retriever.similarity_search(
            query,
            top_k=self.top_k * self.search_multiplier,
            similarity_threshold=self.similarity_threshold,
            namespace_filter=namespace,
        )
        documents = self.reranker.rerank(candidates, query, self.top_k)

        if not documents:
            logger.warning("No documents found for query")
            return context.with_updates(retrieval_context=NO_RELATED_DOCUMENTS)

        llm_context = "\n".join(doc.content for doc in documents)
        user_message = self.template.format(
            context=llm_context, question=context.original_question
        )

        logger.info("Found %d relevant documents for RAG context", len(documents))
        for i, doc in enumerate(documents):
            logger.debug(
                "  Context %d: %s (similarity: %.4f, bm25: %.4f)",
                i + 1,
                doc.source,
                doc.score if doc.score is not None else 0.0,
                doc.rerank_score if doc.rerank_score is not None else 0.0,
            )

        return context.with_updates(
            documents=tuple(documents),
            retrieval_context=llm_context,
            user_message=user_message,
        )
