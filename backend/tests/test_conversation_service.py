"""
Tests for conversation persistence, branching and retention.

Every test runs against both the in-memory and the SQLite repository.
"""

from __future__ import annotations

import time
from datetime import UTC, timedelta

import pytest

from chatrelay.core import (
    BranchEmptyError,
    ConversationNotFoundError,
    ErrorCode,
    MessageNotFoundError,
    NotFoundError,
    RepositoryNotConfiguredError,
    ValidationError,
)
from chatrelay.core.time import TICK, utcnow
from chatrelay.services import ConversationService


def _wait_past(moment) -> None:
    while utcnow() <= moment:
        time.sleep(0.001)


def _trip_planning(service: ConversationService):
    conversation = service.create_conversation("Trip planning")
    service.save_message_to_conversation(conversation.id, "user", "Plan a weekend in Lisbon")
    service.save_message_to_conversation(
        conversation.id, "assistant", "Day 1: Alfama. Day 2: Belem.", "openai", "gpt-4o"
    )
    service.save_message_to_conversation(conversation.id, "user", "Add a day trip to Sintra")
    return service.get_conversation(conversation.id)


def test_create_conversation_starts_empty(conversation_service: ConversationService) -> None:
    conversation = conversation_service.create_conversation("Groceries")

    assert conversation.title == "Groceries"
    assert conversation.created_at == conversation.updated_at
    loaded = conversation_service.get_conversation(conversation.id)
    assert loaded is not None
    assert loaded.messages == ()


def test_blank_title_gets_default(conversation_service: ConversationService) -> None:
    assert conversation_service.create_conversation("   ").title == "New Chat"


def test_get_unknown_conversation_returns_none(conversation_service: ConversationService) -> None:
    assert conversation_service.get_conversation("does-not-exist") is None


def test_messages_round_trip_in_insertion_order(conversation_service: ConversationService) -> None:
    conversation = conversation_service.create_conversation("Order")
    contents = [f"message {i}" for i in range(25)]
    for index, content in enumerate(contents):
        role = "user" if index % 2 == 0 else "assistant"
        conversation_service.save_message_to_conversation(conversation.id, role, content)

    loaded = conversation_service.get_conversation(conversation.id)

    assert [message.content for message in loaded.messages] == contents
    timestamps = [message.timestamp for message in loaded.messages]
    assert all(earlier < later for earlier, later in zip(timestamps, timestamps[1:]))
    assert len({message.id for message in loaded.messages}) == len(contents)
    assert all(isinstance(message.id, int) for message in loaded.messages)


def test_save_message_keeps_provider_metadata_and_bumps_updated_at(
    conversation_service: ConversationService,
) -> None:
    conversation = conversation_service.create_conversation("Meta")

    message = conversation_service.save_message_to_conversation(
        conversation.id, "assistant", "Hi", provider_id="anthropic", model_id="claude-sonnet-4-20250514"
    )

    loaded = conversation_service.get_conversation(conversation.id)
    assert message.provider_id == "anthropic"
    assert message.model_id == "claude-sonnet-4-20250514"
    assert loaded.updated_at >= message.timestamp
    assert loaded.updated_at >= loaded.created_at


def test_save_message_validates_input(conversation_service: ConversationService) -> None:
    conversation = conversation_service.create_conversation("Validation")

    with pytest.raises(ValidationError):
        conversation_service.save_message_to_conversation(conversation.id, "tool", "x")
    with pytest.raises(NotFoundError):
        conversation_service.save_message_to_conversation("missing", "user", "x")


def test_get_messages_respects_limit(conversation_service: ConversationService) -> None:
    conversation = conversation_service.create_conversation("Limit")
    for index in range(5):
        conversation_service.save_message_to_conversation(conversation.id, "user", str(index))

    assert [m.content for m in conversation_service.get_messages(conversation.id, limit=3)] == ["0", "1", "2"]
    assert len(conversation_service.get_messages(conversation.id)) == 5
    assert conversation_service.get_messages("missing") == []


def test_update_title_bumps_updated_at(conversation_service: ConversationService) -> None:
    conversation = conversation_service.create_conversation("Draft")
    _wait_past(conversation.updated_at)

    conversation_service.update_conversation_title(conversation.id, "Final")

    loaded = conversation_service.get_conversation(conversation.id)
    assert loaded.title == "Final"
    assert loaded.updated_at > conversation.updated_at
    assert loaded.created_at == conversation.created_at


def test_update_title_unknown_conversation(conversation_service: ConversationService) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        conversation_service.update_conversation_title("missing", "Title")

    assert exc_info.value.code == ErrorCode.CONVERSATION_NOT_FOUND


def test_list_conversations_orders_by_recent_activity(conversation_service: ConversationService) -> None:
    first = conversation_service.create_conversation("first")
    second = conversation_service.create_conversation("second")
    _wait_past(second.updated_at)
    conversation_service.save_message_to_conversation(first.id, "user", "bump")

    listed = conversation_service.list_conversations()

    assert [c.id for c in listed] == [first.id, second.id]


def test_pagination_is_gap_free(conversation_service: ConversationService) -> None:
    created = {conversation_service.create_conversation(f"c{i}").id for i in range(7)}

    pages = [conversation_service.list_conversations(limit=3, offset=offset) for offset in (0, 3, 6)]
    seen = [c.id for page in pages for c in page]

    assert [len(page) for page in pages] == [3, 3, 1]
    assert len(seen) == len(set(seen))
    assert set(seen) == created
    assert conversation_service.list_conversations(limit=3, offset=50) == []
    assert conversation_service.count_conversations() == 7


def test_pagination_rejects_bad_bounds(conversation_service: ConversationService) -> None:
    with pytest.raises(ValidationError):
        conversation_service.list_conversations(limit=0)
    with pytest.raises(ValidationError):
        conversation_service.list_conversations(offset=-1)


def test_delete_conversation_cascades_messages(conversation_service: ConversationService) -> None:
    conversation = _trip_planning(conversation_service)
    message_ids = [message.id for message in conversation.messages]

    conversation_service.delete_conversation(conversation.id)

    assert conversation_service.get_conversation(conversation.id) is None
    assert conversation_service.get_messages(conversation.id) == []
    for message_id in message_ids:
        with pytest.raises(MessageNotFoundError):
            conversation_service.delete_message(message_id)
    with pytest.raises(ConversationNotFoundError):
        conversation_service.delete_conversation(conversation.id)


def test_delete_message(conversation_service: ConversationService) -> None:
    conversation = _trip_planning(conversation_service)
    target = conversation.messages[1]

    conversation_service.delete_message(target.id)

    remaining = conversation_service.get_conversation(conversation.id).messages
    assert [m.id for m in remaining] == [conversation.messages[0].id, conversation.messages[2].id]
    with pytest.raises(MessageNotFoundError):
        conversation_service.delete_message(target.id)


def test_branch_copies_prefix_with_fresh_ids(conversation_service: ConversationService) -> None:
    source = _trip_planning(conversation_service)
    cutoff = source.messages[1].timestamp

    branch = conversation_service.branch_conversation(source.id, cutoff, "Trip planning (alt)")

    assert branch.id != source.id
    assert branch.title == "Trip planning (alt)"
    assert [(m.role, m.content, m.provider_id, m.model_id) for m in branch.messages] == [
        (m.role, m.content, m.provider_id, m.model_id) for m in source.messages[:2]
    ]
    assert not {m.id for m in branch.messages} & {m.id for m in source.messages}
    assert all(m.conversation_id == branch.id for m in branch.messages)

    unchanged = conversation_service.get_conversation(source.id)
    assert unchanged.messages == source.messages


def test_branch_accepts_aware_cutoff(conversation_service: ConversationService) -> None:
    source = _trip_planning(conversation_service)
    cutoff = source.messages[0].timestamp.replace(tzinfo=UTC)

    branch = conversation_service.branch_conversation(source.id, cutoff, "First only")

    assert [m.content for m in branch.messages] == ["Plan a weekend in Lisbon"]


def test_branch_before_first_message_is_empty(conversation_service: ConversationService) -> None:
    source = _trip_planning(conversation_service)
    before = conversation_service.count_conversations()

    with pytest.raises(BranchEmptyError):
        conversation_service.branch_conversation(
            source.id, source.messages[0].timestamp - timedelta(seconds=1), "Empty"
        )

    assert conversation_service.count_conversations() == before


def test_branch_unknown_source(conversation_service: ConversationService) -> None:
    with pytest.raises(NotFoundError):
        conversation_service.branch_conversation("missing", utcnow(), "Branch")


def test_cleanup_is_strict_and_idempotent(conversation_service: ConversationService) -> None:
    old = conversation_service.create_conversation("old")

    assert conversation_service.cleanup_old_conversations(old.updated_at) == 0

    cutoff = old.updated_at + TICK
    _wait_past(cutoff)
    fresh = conversation_service.create_conversation("fresh")

    assert conversation_service.cleanup_old_conversations(cutoff) == 1
    assert conversation_service.cleanup_old_conversations(cutoff) == 0
    assert conversation_service.get_conversation(old.id) is None
    assert conversation_service.get_conversation(fresh.id) is not None


def test_cleanup_by_days(conversation_service: ConversationService) -> None:
    conversation = _trip_planning(conversation_service)

    assert conversation_service.cleanup_old_conversations(30) == 0
    _wait_past(conversation.updated_at)
    assert conversation_service.cleanup_old_conversations(0) == 1
    assert conversation_service.get_messages(conversation.id) == []

    with pytest.raises(ValidationError):
        conversation_service.cleanup_old_conversations(-1)


def test_unconfigured_service_fails_every_operation() -> None:
    service = ConversationService()
    operations = [
        lambda: service.create_conversation("x"),
        lambda: service.get_conversation("x"),
        lambda: service.list_conversations(),
        lambda: service.update_conversation_title("x", "y"),
        lambda: service.delete_conversation("x"),
        lambda: service.save_message_to_conversation("x", "user", "y"),
        lambda: service.cleanup_old_conversations(30),
        lambda: service.branch_conversation("x", utcnow(), "y"),
        lambda: service.get_messages("x"),
        lambda: service.delete_message(1),
        lambda: service.count_conversations(),
    ]

    for operation in operations:
        with pytest.raises(RepositoryNotConfiguredError):
            operation()
