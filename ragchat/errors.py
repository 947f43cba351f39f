"""Exception types raised by the ragchat core."""


class RagChatError(Exception):
    """Base class for ragchat errors."""


class ConversationNotFoundError(RagChatError):
    """Raised when a conversation id does not resolve to a stored conversation."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found with id: {conversation_id}")


class ModelError(RagChatError):
    """Raised when the generative model cannot be reached or returns garbage."""


class InteractionError(RagChatError):
    pass
