"""Conversation, message, branch and retention endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, Field

from chatrelay.api.deps import get_container, get_conversation_service
from chatrelay.container import Container
from chatrelay.core import ConversationNotFoundError
from chatrelay.services import ConversationService

router = APIRouter(tags=["conversations"])


class CreateConversationRequest(BaseModel):
    title: str | None = Field(None, max_length=255)


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class SaveMessageRequest(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str
    provider_id: str | None = None
    model_id: str | None = None


class BranchRequest(BaseModel):
    upto_timestamp: datetime
    title: str = Field(..., min_length=1, max_length=255)


class CleanupRequest(BaseModel):
    days: float | None = Field(None, ge=0)
    before: datetime | None = None


@router.post("/conversations", status_code=201)
def create_conversation_route(
    body: CreateConversationRequest | None = Body(None),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    conversation = service.create_conversation(body.title if body else None)
    return {"conversation": conversation.to_dict()}


@router.get("/conversations")
def list_conversations_route(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    conversations = service.list_conversations(limit=limit, offset=offset)
    return {
        "conversations": [conversation.to_dict() for conversation in conversations],
        "total": service.count_conversations(),
        "limit": limit,
        "offset": offset,
    }


@router.get("/conversations/{conversation_id}")
def get_conversation_route(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    conversation = service.get_conversation(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError(conversation_id)
    return {"conversation": conversation.to_dict()}


@router.patch("/conversations/{conversation_id}")
def rename_conversation_route(
    conversation_id: str,
    body: UpdateConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    service.update_conversation_title(conversation_id, body.title)
    return {"status": "updated", "conversation_id": conversation_id}


@router.delete("/conversations/{conversation_id}")
def delete_conversation_route(
    conversation_id: str,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    service.delete_conversation(conversation_id)
    return {"status": "deleted", "conversation_id": conversation_id}


@router.get("/conversations/{conversation_id}/messages")
def list_messages_route(
    conversation_id: str,
    limit: int = Query(1000, ge=1),
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    messages = service.get_messages(conversation_id, limit=limit)
    return {
        "conversation_id": conversation_id,
        "messages": [message.to_dict() for message in messages],
    }


@router.post("/conversations/{conversation_id}/messages", status_code=201)
def save_message_route(
    conversation_id: str,
    body: SaveMessageRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    message = service.save_message_to_conversation(
        conversation_id,
        body.role,
        body.content,
        provider_id=body.provider_id,
        model_id=body.model_id,
    )
    return {"message": message.to_dict()}


@router.delete("/messages/{message_id}")
def delete_message_route(
    message_id: int,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    service.delete_message(message_id)
    return {"status": "deleted", "message_id": message_id}


@router.post("/conversations/{conversation_id}/branch", status_code=201)
def branch_conversation_route(
    conversation_id: str,
    body: BranchRequest,
    service: ConversationService = Depends(get_conversation_service),
) -> dict[str, Any]:
    branch = service.branch_conversation(conversation_id, body.upto_timestamp, body.title)
    return {"conversation": branch.to_dict()}


@router.post("/conversations/cleanup")
def cleanup_conversations_route(
    body: CleanupRequest | None = Body(None),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    """Delete conversations idle longer than the retention window."""
    body = body or CleanupRequest()
    if body.before is not None:
        max_age: datetime | float = body.before
    elif body.days is not None:
        max_age = body.days
    else:
        max_age = container.settings.conversation_retention_days
    deleted = container.conversation_service.cleanup_old_conversations(max_age)
    return {"deleted": deleted}
