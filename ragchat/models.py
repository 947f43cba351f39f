"""Data models for the RAG chat application."""

from __future__ import annotations

import dataclasses
import datetime
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

import numpy as np


class Role(str, Enum):
    """Closed set of chat message roles."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @classmethod
    def from_value(cls, name: str) -> Role:
        """Resolve a role from its wire name.

        Raises:
            ValueError: If the name is not a known role.

        Returns:
            The matching Role member.
        """
        try:
            return cls(name)
        except ValueError:
            msg = f"Unknown role: {name}"
            raise ValueError(msg) from None

    def message(self, content: str) -> dict[str, str]:
        """Build a chat-completions message for this role.

        Returns:
            Mapping with ``role`` and ``content`` keys.
        """
        return {"role": self.value, "content": content}


@dataclass
class Document:
    """A retrieval unit produced by the vector stage.

    ``score`` is the cosine similarity from the index. ``rerank_score`` is
    set by the lexical reranker and only drives ordering; ``score`` is kept
    for diagnostics.
    """

    content: str
    metadata: dict[str, Any]
    score: float | None = None
    rerank_score: float | None = None
    embedding: np.ndarray | None = None

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single stored turn of a conversation."""

    role: Role
    content: str
    created_at: str = field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC).isoformat()
    )

    @classmethod
    def user(cls, content: str) -> ConversationTurn:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> ConversationTurn:
        return cls(role=Role.ASSISTANT, content=content)

    def to_message(self) -> dict[str, str]:
        return self.role.message(self.content)


@dataclass(frozen=True)
class Chat:
    """A stored conversation header; turns are kept separately."""

    id: str
    title: str
    created_at: str


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling options forwarded to the generative model."""

    temperature: float
    top_k: int
    top_p: float
    repeat_penalty: float


@dataclass(frozen=True)
class RequestContext:
    """Typed accumulator threaded through the pipeline stages of one interaction.

    Stages never mutate a context; they return a copy built with
    ``with_updates``. Unknown keys live in ``extras`` and are always
    carried forward.
    """

    conversation_id: str
    original_question: str
    user_message: str
    principal: str | None = None
    enriched_question: str | None = None
    expansion_ratio: float | None = None
    history: tuple[ConversationTurn, ...] = ()
    documents: tuple[Document, ...] = ()
    retrieval_context: str | None = None
    extras: MappingProxyType = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def start(
        cls,
        conversation_id: str,
        question: str,
        principal: str | None = None,
    ) -> RequestContext:
        """Create the initial context for a user question.

        Returns:
            A context whose outgoing user message is the literal question.
        """
        return cls(
            conversation_id=conversation_id,
            original_question=question,
            user_message=question,
            principal=principal,
        )

    @property
    def retrieval_query(self) -> str:
        """Query used for retrieval: the enriched question when expansion succeeded."""
        return self.enriched_question or self.original_question

    def with_updates(self, **changes: Any) -> RequestContext:
        """Return a copy with the given fields replaced."""  # noqa: DOC201
        if "extras" in changes:
            changes["extras"] = MappingProxyType(dict(changes["extras"]))
        return dataclasses.replace(self, **changes)

    def with_extra(self, key: str, value: Any) -> RequestContext:
        """Return a copy with one extra key added; existing extras are kept."""  # noqa: DOC201
        return self.with_updates(extras={**self.extras, key: value})

    def to_messages(self, system_prompt: str | None = None) -> list[dict[str, str]]:
        """Build the chat-completions message list for the final model call.

        Returns:
            System prompt (if any), prior turns, then the outgoing user message.
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append(Role.SYSTEM.message(system_prompt))
        messages.extend(turn.to_message() for turn in self.history)
        messages.append(Role.USER.message(self.user_message))
        return messages


@dataclass(frozen=True)
class StreamEvent:
    """One event of a streamed interaction."""

    kind: Literal["token", "done", "error"]
    data: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.kind != "token"


@dataclass(frozen=True)
class InteractionResult:
    """Outcome of a completed (non-streamed) interaction."""

    answer: str
    context: RequestContext
