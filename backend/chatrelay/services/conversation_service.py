"""Conversation persistence, branching and retention."""

from __future__ import annotations

from datetime import datetime, timedelta

from chatrelay.core import (
    BranchEmptyError,
    ConversationNotFoundError,
    RepositoryNotConfiguredError,
    ValidationError,
    get_logger,
)
from chatrelay.core.metrics import metrics
from chatrelay.core.time import to_naive_utc, utcnow
from chatrelay.db.repositories.base import (
    ChatRepository,
    Conversation,
    ConversationWithMessages,
    Message,
    SaveMessageData,
)
from chatrelay.providers.base import ROLES

logger = get_logger(__name__)

DEFAULT_TITLE = "New Chat"


class ConversationService:
    """
    Conversation CRUD on top of a ChatRepository.

    Holds no conversation state between calls. Each repository call is atomic;
    multi-call operations (branching) are not.
    """

    def __init__(self, repository: ChatRepository | None = None):
        self.repository = repository

    def _repo(self) -> ChatRepository:
        if self.repository is None:
            raise RepositoryNotConfiguredError()
        return self.repository

    def create_conversation(self, title: str | None = None) -> Conversation:
        title = title.strip() if title and title.strip() else DEFAULT_TITLE
        conversation = self._repo().create_conversation(title)
        logger.info("Conversation created", data={"conversation_id": conversation.id})
        return conversation

    def get_conversation(self, conversation_id: str) -> ConversationWithMessages | None:
        return self._repo().get_conversation(conversation_id)

    def list_conversations(self, limit: int = 50, offset: int = 0) -> list[Conversation]:
        repo = self._repo()
        if limit < 1:
            raise ValidationError("limit must be positive", details={"limit": limit})
        if offset < 0:
            raise ValidationError("offset must not be negative", details={"offset": offset})
        return repo.list_conversations(limit, offset)

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        repo = self._repo()
        if not title or not title.strip():
            raise ValidationError("title must not be empty")
        repo.update_conversation_title(conversation_id, title.strip())

    def delete_conversation(self, conversation_id: str) -> None:
        self._repo().delete_conversation(conversation_id)
        logger.info("Conversation deleted", data={"conversation_id": conversation_id})

    def save_message_to_conversation(
        self,
        conversation_id: str,
        role: str,
        content: str,
        provider_id: str | None = None,
        model_id: str | None = None,
    ) -> Message:
        repo = self._repo()
        if role not in ROLES:
            raise ValidationError(f"Invalid message role: {role}", details={"allowed": sorted(ROLES)})
        return repo.save_message(
            SaveMessageData(
                conversation_id=conversation_id,
                role=role,
                content=content,
                provider_id=provider_id,
                model_id=model_id,
            )
        )

    def get_messages(self, conversation_id: str, limit: int = 1000) -> list[Message]:
        return self._repo().get_messages(conversation_id, limit)

    def delete_message(self, message_id: int) -> None:
        self._repo().delete_message(message_id)

    def count_conversations(self) -> int:
        return self._repo().get_conversation_count()

    def cleanup_old_conversations(self, max_age: datetime | float) -> int:
        """
        Delete conversations whose updated_at is strictly before the cutoff.

        ``max_age`` is either the cutoff itself or a number of days before
        now. Running it again with the same cutoff deletes nothing.
        """
        repo = self._repo()
        if isinstance(max_age, datetime):
            cutoff = to_naive_utc(max_age)
        else:
            if max_age < 0:
                raise ValidationError("retention days must not be negative", details={"days": max_age})
            cutoff = utcnow() - timedelta(days=max_age)

        deleted = repo.delete_old_conversations(cutoff)
        metrics.increment("conversations_cleaned_total", deleted)
        logger.info(
            "Old conversations cleaned up",
            data={"cutoff": cutoff.isoformat(), "deleted": deleted},
        )
        return deleted

    def branch_conversation(
        self,
        source_id: str,
        upto_timestamp: datetime,
        new_title: str,
    ) -> ConversationWithMessages:
        """
        Copy the source's messages up to and including ``upto_timestamp`` into
        a new conversation.

        Copies get fresh ids and timestamps; role, content, provider and model
        are preserved in order. The source is not modified.

        Raises:
            ConversationNotFoundError: the source does not exist.
            BranchEmptyError: no message is at or before the cutoff.
        """
        repo = self._repo()
        source = repo.get_conversation(source_id)
        if source is None:
            raise ConversationNotFoundError(source_id)

        cutoff = to_naive_utc(upto_timestamp)
        kept = [message for message in source.messages if message.timestamp <= cutoff]
        if not kept:
            raise BranchEmptyError(source_id)

        branch = self.create_conversation(new_title)
        copies = tuple(
            repo.save_message(
                SaveMessageData(
                    conversation_id=branch.id,
                    role=message.role,
                    content=message.content,
                    provider_id=message.provider_id,
                    model_id=message.model_id,
                )
            )
            for message in kept
        )

        logger.info(
            "Conversation branched",
            data={"source_id": source_id, "branch_id": branch.id, "messages": len(copies)},
        )
        result = repo.get_conversation(branch.id)
        if result is None:
            raise ConversationNotFoundError(branch.id)
        return result
