"""Pipeline orchestrator: expansion -> memory -> RAG -> model -> memory append."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol

from .chat_repository import ChatRepository
from .config import config
from .embeddings import EmbeddingService
from .errors import ConversationNotFoundError, InteractionError
from .expansion import QueryExpansionStage
from .llm import ChatModel, default_chat_options
from .memory import ConversationMemory
from .models import (
    ConversationTurn,
    GenerationOptions,
    InteractionResult,
    RequestContext,
    StreamEvent,
)
from .prompts import SYSTEM_PROMPT
from .rag import RAGStage
from .retriever import VectorRetriever
from .vector_store import get_vector_store

if TYPE_CHECKING:
    from .vector_store import FaissVectorStore

logger = config.get_logger(__name__)

INTERACTION_FAILED = "Failed to process interaction"


class Stage(Protocol):
    def process(self, context: RequestContext) -> RequestContext: ...


class ChatPipeline:
    """Runs one user interaction through the ordered stages and the chat model.

    Stage order is fixed: query expansion, conversation memory, then
    retrieval augmentation. The user question and the model answer are
    stored together only after the model call succeeds.
    """

    def __init__(  # noqa: PLR0913
        self,
        chat_model: ChatModel,
        expansion: QueryExpansionStage,
        memory: ConversationMemory,
        rag_stage: RAGStage,
        system_prompt: str = SYSTEM_PROMPT,
        options: GenerationOptions | None = None,
    ) -> None:
        self.chat_model = chat_model
        self.memory = memory
        self.stages: tuple[Stage, ...] = (expansion, memory, rag_stage)
        self.system_prompt = system_prompt
        self.options = options or default_chat_options()

    @classmethod
    def from_config(
        cls,
        api_key: str | None = None,
        *,
        vector_store: FaissVectorStore | None = None,
        repository: ChatRepository | None = None,
        embedding_service: EmbeddingService | None = None,
    ) -> ChatPipeline:
        """Wire a pipeline from configuration, reusing any collaborator given.

        Returns:
            A ready pipeline over the configured stores and models.
        """
        chat_model = ChatModel(api_key=api_key)
        embedding_service = embedding_service or EmbeddingService(api_key=api_key)
        vector_store = vector_store or get_vector_store()
        memory = ConversationMemory(repository or ChatRepository())
        rag_stage = RAGStage(VectorRetriever(embedding_service, vector_store))
        logger.info("Using %s vector storage", vector_store.backend)
        return cls(chat_model, QueryExpansionStage(chat_model), memory, rag_stage)

    def _ensure_conversation(self, conversation_id: str) -> None:
        if not self.memory.repository.exists(conversation_id):
            raise ConversationNotFoundError(conversation_id)

    def prepare(
        self, conversation_id: str, question: str, principal: str | None = None
    ) -> RequestContext:
        """Run every stage over a fresh context.

        Returns:
            The context ready for the final model call.
        """
        context = RequestContext.start(conversation_id, question, principal)
        for stage in self.stages:
            logger.debug("Running stage %s", type(stage).__name__)
            context = stage.process(context)
        return context

    def _record(self, context: RequestContext, answer: str) -> None:
        self.memory.append(
            context.conversation_id,
            [
                ConversationTurn.user(context.original_question),
                ConversationTurn.assistant(answer),
            ],
        )

    def answer(
        self, conversation_id: str, question: str, principal: str | None = None
    ) -> InteractionResult:
        """Answer a question in a conversation and store the exchange.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
            InteractionError: If any collaborator fails; nothing is stored.

        Returns:
            The answer text and the final request context.
        """
        logger.info("Processing question for conversation %s", conversation_id)
        self._ensure_conversation(conversation_id)

        try:
            context = self.prepare(conversation_id, question, principal)
            answer = self.chat_model.complete(
                context.to_messages(self.system_prompt), self.options
            )
            self._record(context, answer)
        except ConversationNotFoundError:
            raise
        except Exception as e:
            logger.exception(
                "Interaction failed for conversation %s", conversation_id
            )
            raise InteractionError(INTERACTION_FAILED) from e
        else:
            logger.info(
                "Answered conversation %s using %d documents",
                conversation_id,
                len(context.documents),
            )
            return InteractionResult(answer=answer, context=context)

    def stream(
        self, conversation_id: str, question: str, principal: str | None = None
    ) -> Iterator[StreamEvent]:
        """Answer a question as a stream of events.

        The conversation is checked before the stream starts. Closing the
        returned iterator early cancels generation and stores nothing.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.

        Returns:
            An iterator of token events followed by exactly one ``done`` or
            ``error`` event.
        """
        logger.info("Streaming answer for conversation %s", conversation_id)
        self._ensure_conversation(conversation_id)
        return self._stream_events(conversation_id, question, principal)

    def _stream_events(
        self, conversation_id: str, question: str, principal: str | None
    ) -> Iterator[StreamEvent]:
        tokens = None
        parts: list[str] = []
        try:
            context = self.prepare(conversation_id, question, principal)
            tokens = self.chat_model.stream(
                context.to_messages(self.system_prompt), self.options
            )
            for token in tokens:
                parts.append(token)
                yield StreamEvent("token", token)
            self._record(context, "".join(parts).strip())
        except Exception:
            logger.exception(
                "Streaming interaction failed for conversation %s", conversation_id
            )
            yield StreamEvent("error", INTERACTION_FAILED)
            return
        finally:
            if tokens is not None:
                tokens.close()

        yield StreamEvent("done", "")
