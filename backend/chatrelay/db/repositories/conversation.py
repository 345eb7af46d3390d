"""Repository helpers for conversations and messages."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload, sessionmaker

from chatrelay.core import ConversationNotFoundError, MessageNotFoundError
from chatrelay.core.time import next_after, to_naive_utc, utcnow
from chatrelay.db import models
from chatrelay.db.repositories.base import (
    ChatRepository,
    Conversation,
    ConversationWithMessages,
    Message,
    SaveMessageData,
)


def create_conversation(db: Session, title: str) -> models.Conversation:
    """Create a new, empty conversation."""
    now = utcnow()
    conversation = models.Conversation(title=title, created_at=now, updated_at=now)
    db.add(conversation)
    db.commit()
    db.refresh(conversation)
    return conversation


def get_conversation(db: Session, conversation_id: str) -> models.Conversation | None:
    """Fetch a conversation with its messages loaded."""
    stmt = (
        select(models.Conversation)
        .options(selectinload(models.Conversation.messages))
        .where(models.Conversation.id == conversation_id)
    )
    return db.execute(stmt).scalar_one_or_none()


def list_conversations(db: Session, limit: int, offset: int) -> list[models.Conversation]:
    stmt = (
        select(models.Conversation)
        .order_by(models.Conversation.updated_at.desc(), models.Conversation.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(db.execute(stmt).scalars().all())


def update_conversation_title(db: Session, conversation_id: str, title: str) -> models.Conversation | None:
    """Rename an existing conversation."""
    conversation = db.get(models.Conversation, conversation_id)
    if conversation is None:
        return None
    conversation.title = title
    conversation.updated_at = max(utcnow(), conversation.updated_at)
    db.commit()
    return conversation


def delete_conversation(db: Session, conversation_id: str) -> bool:
    """Delete a conversation and cascade its messages."""
    conversation = db.get(models.Conversation, conversation_id)
    if conversation is None:
        return False
    db.delete(conversation)
    db.commit()
    return True


def _last_message_timestamp(db: Session, conversation_id: str) -> datetime | None:
    stmt = select(func.max(models.Message.timestamp)).where(
        models.Message.conversation_id == conversation_id
    )
    return db.execute(stmt).scalar_one_or_none()


def create_message(db: Session, data: SaveMessageData) -> models.Message | None:
    """Insert a chat message and bump the parent's updated_at."""
    conversation = db.get(models.Conversation, data.conversation_id, with_for_update=True)
    if conversation is None:
        return None

    timestamp = next_after(_last_message_timestamp(db, data.conversation_id))
    message = models.Message(
        conversation_id=data.conversation_id,
        role=data.role,
        content=data.content,
        timestamp=timestamp,
        provider=data.provider_id,
        model=data.model_id,
    )
    db.add(message)
    conversation.updated_at = max(timestamp, conversation.updated_at)
    db.commit()
    db.refresh(message)
    return message


def get_conversation_messages(db: Session, conversation_id: str, limit: int) -> list[models.Message]:
    """Messages of a conversation ordered by timestamp."""
    stmt = (
        select(models.Message)
        .where(models.Message.conversation_id == conversation_id)
        .order_by(models.Message.timestamp.asc(), models.Message.id.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def delete_message(db: Session, message_id: int) -> bool:
    result = db.execute(delete(models.Message).where(models.Message.id == message_id))
    db.commit()
    return result.rowcount > 0


def count_conversations(db: Session) -> int:
    return db.execute(select(func.count()).select_from(models.Conversation)).scalar_one()


def delete_conversations_before(db: Session, cutoff: datetime) -> int:
    """Delete every conversation last updated strictly before cutoff."""
    stale = select(models.Conversation.id).where(models.Conversation.updated_at < cutoff)
    ids = list(db.execute(stale).scalars().all())
    if not ids:
        return 0
    db.execute(delete(models.Message).where(models.Message.conversation_id.in_(ids)))
    db.execute(delete(models.Conversation).where(models.Conversation.id.in_(ids)))
    db.commit()
    return len(ids)


def _to_message(row: models.Message) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        role=row.role,
        content=row.content,
        timestamp=row.timestamp,
        provider_id=row.provider,
        model_id=row.model,
    )


def _to_conversation(row: models.Conversation) -> Conversation:
    return Conversation(
        id=row.id,
        title=row.title,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlChatRepository(ChatRepository):
    """ChatRepository over SQLAlchemy; one session per call."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def create_conversation(self, title: str) -> Conversation:
        with self._session_factory() as db:
            return _to_conversation(create_conversation(db, title))

    def get_conversation(self, conversation_id: str) -> ConversationWithMessages | None:
        with self._session_factory() as db:
            row = get_conversation(db, conversation_id)
            if row is None:
                return None
            return ConversationWithMessages(
                id=row.id,
                title=row.title,
                created_at=row.created_at,
                updated_at=row.updated_at,
                messages=tuple(_to_message(message) for message in row.messages),
            )

    def list_conversations(self, limit: int, offset: int) -> list[Conversation]:
        with self._session_factory() as db:
            return [_to_conversation(row) for row in list_conversations(db, limit, offset)]

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        with self._session_factory() as db:
            if update_conversation_title(db, conversation_id, title) is None:
                raise ConversationNotFoundError(conversation_id)

    def delete_conversation(self, conversation_id: str) -> None:
        with self._session_factory() as db:
            if not delete_conversation(db, conversation_id):
                raise ConversationNotFoundError(conversation_id)

    def save_message(self, data: SaveMessageData) -> Message:
        with self._session_factory() as db:
            row = create_message(db, data)
            if row is None:
                raise ConversationNotFoundError(data.conversation_id)
            return _to_message(row)

    def get_messages(self, conversation_id: str, limit: int) -> list[Message]:
        with self._session_factory() as db:
            return [_to_message(row) for row in get_conversation_messages(db, conversation_id, limit)]

    def delete_message(self, message_id: int) -> None:
        with self._session_factory() as db:
            if not delete_message(db, message_id):
                raise MessageNotFoundError(message_id)

    def get_conversation_count(self) -> int:
        with self._session_factory() as db:
            return count_conversations(db)

    def delete_old_conversations(self, cutoff: datetime) -> int:
        with self._session_factory() as db:
            return delete_conversations_before(db, to_naive_utc(cutoff))
