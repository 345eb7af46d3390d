"""Dict-backed ChatRepository for tests and ephemeral deployments."""

from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import replace
from datetime import datetime

from chatrelay.core import ConversationNotFoundError, MessageNotFoundError
from chatrelay.core.time import next_after, to_naive_utc, utcnow
from chatrelay.db.repositories.base import (
    ChatRepository,
    Conversation,
    ConversationWithMessages,
    Message,
    SaveMessageData,
)


class InMemoryChatRepository(ChatRepository):
    def __init__(self):
        self._lock = threading.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}
        self._ids = itertools.count(1)

    def create_conversation(self, title: str) -> Conversation:
        now = utcnow()
        conversation = Conversation(id=str(uuid.uuid4()), title=title, created_at=now, updated_at=now)
        with self._lock:
            self._conversations[conversation.id] = conversation
            self._messages[conversation.id] = []
        return conversation

    def get_conversation(self, conversation_id: str) -> ConversationWithMessages | None:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                return None
            return ConversationWithMessages(
                id=conversation.id,
                title=conversation.title,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
                messages=tuple(self._messages[conversation_id]),
            )

    def list_conversations(self, limit: int, offset: int) -> list[Conversation]:
        with self._lock:
            ordered = sorted(
                self._conversations.values(),
                key=lambda c: (c.updated_at, c.id),
                reverse=True,
            )
        return ordered[offset : offset + limit]

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        with self._lock:
            conversation = self._require(conversation_id)
            self._conversations[conversation_id] = replace(
                conversation,
                title=title,
                updated_at=max(utcnow(), conversation.updated_at),
            )

    def delete_conversation(self, conversation_id: str) -> None:
        with self._lock:
            self._require(conversation_id)
            del self._conversations[conversation_id]
            del self._messages[conversation_id]

    def save_message(self, data: SaveMessageData) -> Message:
        with self._lock:
            conversation = self._require(data.conversation_id)
            history = self._messages[data.conversation_id]
            timestamp = next_after(history[-1].timestamp if history else None)
            message = Message(
                id=next(self._ids),
                conversation_id=data.conversation_id,
                role=data.role,
                content=data.content,
                timestamp=timestamp,
                provider_id=data.provider_id,
                model_id=data.model_id,
            )
            history.append(message)
            self._conversations[data.conversation_id] = replace(
                conversation, updated_at=max(timestamp, conversation.updated_at)
            )
        return message

    def get_messages(self, conversation_id: str, limit: int) -> list[Message]:
        with self._lock:
            return list(self._messages.get(conversation_id, ())[:limit])

    def delete_message(self, message_id: int) -> None:
        with self._lock:
            for history in self._messages.values():
                for index, message in enumerate(history):
                    if message.id == message_id:
                        del history[index]
                        return
        raise MessageNotFoundError(message_id)

    def get_conversation_count(self) -> int:
        with self._lock:
            return len(self._conversations)

    def delete_old_conversations(self, cutoff: datetime) -> int:
        cutoff = to_naive_utc(cutoff)
        with self._lock:
            stale = [cid for cid, c in self._conversations.items() if c.updated_at < cutoff]
            for conversation_id in stale:
                del self._conversations[conversation_id]
                del self._messages[conversation_id]
        return len(stale)
