"""Conversation storage: the repository contract and its implementations."""

from chatrelay.db.repositories.base import (
    ChatRepository,
    Conversation,
    ConversationWithMessages,
    Message,
    SaveMessageData,
)
from chatrelay.db.repositories.conversation import SqlChatRepository
from chatrelay.db.repositories.memory import InMemoryChatRepository
from chatrelay.db.repositories.settings import (
    InMemorySettingsRepository,
    SettingsRepository,
    SqlSettingsRepository,
)

__all__ = [
    "ChatRepository",
    "Conversation",
    "ConversationWithMessages",
    "InMemoryChatRepository",
    "InMemorySettingsRepository",
    "Message",
    "SaveMessageData",
    "SettingsRepository",
    "SqlChatRepository",
    "SqlSettingsRepository",
]
