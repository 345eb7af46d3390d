"""Request-scoped access to the services wired at startup."""

from __future__ import annotations

from fastapi import Request

from chatrelay.container import Container
from chatrelay.services import (
    ChatService,
    ConfigService,
    ConversationService,
    ProviderService,
    SettingsService,
)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_chat_service(request: Request) -> ChatService:
    return get_container(request).chat_service


def get_provider_service(request: Request) -> ProviderService:
    return get_container(request).provider_service


def get_config_service(request: Request) -> ConfigService:
    return get_container(request).config_service


def get_conversation_service(request: Request) -> ConversationService:
    return get_container(request).conversation_service


def get_settings_service(request: Request) -> SettingsService:
    return get_container(request).settings_service
