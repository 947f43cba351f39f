"""Sliding-window conversation memory."""

from __future__ import annotations

import threading
import weakref
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .config import config

if TYPE_CHECKING:
    from .chat_repository import ChatRepository
    from .models import ConversationTurn, RequestContext

logger = config.get_logger(__name__)


class ConversationMemory:
    """Stores turns per conversation and hands the newest ``max_messages`` to the model.

    Older turns are never summarized or merged; they simply fall out of the
    window. Appends to the same conversation are serialized; appends to
    different conversations do not wait on each other.
    """

    def __init__(
        self, repository: ChatRepository, max_messages: int | None = None
    ) -> None:
        """Initialize memory over a chat repository.

        Args:
            repository: Persistence collaborator holding the turns.
            max_messages: Window size. If None, uses config.MEMORY_MAX_MESSAGES.

        Raises:
            ValueError: If the window size is not positive.
        """
        self.repository = repository
        self.max_messages = (
            config.MEMORY_MAX_MESSAGES if max_messages is None else max_messages
        )
        if self.max_messages < 1:
            msg = f"max_messages must be positive, got {self.max_messages}"
            raise ValueError(msg)

        # A lock lives only while some append holds it
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = self._locks[conversation_id] = threading.Lock()
            return lock

    def append(self, conversation_id: str, turns: Sequence[ConversationTurn]) -> None:
        """Append turns, in order, to a conversation's history.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        if not turns:
            return

        logger.debug("Adding %d turns to conversation %s", len(turns), conversation_id)
        with self._lock_for(conversation_id):
            try:
                self.repository.append_entries(conversation_id, turns)
            except Exception:
                logger.exception(
                    "Failed to add turns to conversation %s", conversation_id
                )
                raise
        logger.info("Added %d turns to conversation %s", len(turns), conversation_id)

    def get(self, conversation_id: str) -> list[ConversationTurn]:
        """Return the most recent turns in chronological order.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.

        Returns:
            Exactly ``min(total_turns, max_messages)`` turns.
        """
        turns = self.repository.fetch_recent_entries(conversation_id, self.max_messages)
        logger.info(
            "Retrieved %d turns for conversation %s (window %d)",
            len(turns),
            conversation_id,
            self.max_messages,
        )
        return turns

    def clear(self, conversation_id: str) -> None:
        """Remove every turn of a conversation atomically.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        with self._lock_for(conversation_id):
            removed = self.repository.clear_entries(conversation_id)
        logger.info("Cleared %d turns from conversation %s", removed, conversation_id)

    def process(self, context: RequestContext) -> RequestContext:
        """Inject the conversation's recent turns into the request context.

        Returns:
            The context with ``history`` populated.
        """
        history = self.get(context.conversation_id)
        return context.with_updates(history=tuple(history))
