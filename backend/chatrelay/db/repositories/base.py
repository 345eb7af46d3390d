"""
Storage contract for conversations and messages.

Repositories hand out plain dataclasses, never ORM instances, so callers
cannot mutate stored state behind the repository's back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Message:
    id: int
    conversation_id: str
    role: str
    content: str
    timestamp: datetime
    provider_id: str | None = None
    model_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "provider_id": self.provider_id,
            "model_id": self.model_id,
        }


@dataclass(frozen=True)
class Conversation:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class ConversationWithMessages(Conversation):
    """A conversation and its messages in timestamp order."""

    messages: tuple[Message, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["messages"] = [message.to_dict() for message in self.messages]
        return data


@dataclass(frozen=True)
class SaveMessageData:
    """Input for ChatRepository.save_message."""

    conversation_id: str
    role: str
    content: str
    provider_id: str | None = None
    model_id: str | None = None


class ChatRepository(ABC):
    """
    Persistence primitives for conversations.

    Every method is atomic on its own. Operations on an unknown id raise
    NotFoundError (ConversationNotFoundError / MessageNotFoundError), except
    get_conversation, which returns None.
    """

    @abstractmethod
    def create_conversation(self, title: str) -> Conversation: ...

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> ConversationWithMessages | None: ...

    @abstractmethod
    def list_conversations(self, limit: int, offset: int) -> list[Conversation]:
        """Most recently updated first; ties broken by id, descending."""

    @abstractmethod
    def update_conversation_title(self, conversation_id: str, title: str) -> None: ...

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> None: ...

    @abstractmethod
    def save_message(self, data: SaveMessageData) -> Message:
        """
        Append a message and bump the conversation's updated_at.

        The stored timestamp is strictly later than every earlier message of
        the same conversation.
        """

    @abstractmethod
    def get_messages(self, conversation_id: str, limit: int) -> list[Message]: ...

    @abstractmethod
    def delete_message(self, message_id: int) -> None: ...

    @abstractmethod
    def get_conversation_count(self) -> int: ...

    @abstractmethod
    def delete_old_conversations(self, cutoff: datetime) -> int:
        """Delete conversations whose updated_at is strictly before cutoff."""
