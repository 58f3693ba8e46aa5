"""Conversation memory module."""

from .models import ConversationMessage, ConversationState, MessageSender
from .store import (
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
    create_conversation_store,
)
from .manager import ConversationMemory, get_conversation_memory

__all__ = [
    # Models
    "ConversationMessage",
    "ConversationState",
    "MessageSender",
    # Stores
    "ConversationStore",
    "InMemoryConversationStore",
    "RedisConversationStore",
    "create_conversation_store",
    # Memory
    "ConversationMemory",
    "get_conversation_memory",
]
