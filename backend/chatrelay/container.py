"""
Composition point.

Every service is built here and receives its collaborators through its
constructor. Tests build their own container with fakes swapped in.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass

import httpx
from sqlalchemy.engine import Engine

from chatrelay.config import Settings
from chatrelay.core import get_logger
from chatrelay.db import create_db_engine, init_db, make_session_factory
from chatrelay.db.repositories import (
    ChatRepository,
    InMemorySettingsRepository,
    SettingsRepository,
    SqlChatRepository,
    SqlSettingsRepository,
)
from chatrelay.providers.registry import AdapterFactory, ProviderRegistry
from chatrelay.services import (
    ChatService,
    ConfigService,
    ConversationService,
    ProviderService,
    SettingsService,
)

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    registry: ProviderRegistry
    provider_service: ProviderService
    config_service: ConfigService
    chat_service: ChatService
    conversation_service: ConversationService
    settings_service: SettingsService
    engine: Engine | None = None

    async def aclose(self) -> None:
        await self.provider_service.aclose()
        if self.engine is not None:
            self.engine.dispose()


def build_container(
    settings: Settings,
    *,
    repository: ChatRepository | None = None,
    settings_repository: SettingsRepository | None = None,
    environ: MutableMapping[str, str] | None = None,
    transport_overrides: Mapping[str, httpx.AsyncBaseTransport] | None = None,
    factories: Mapping[str, AdapterFactory] | None = None,
) -> Container:
    """
    Wire the services.

    Without an explicit repository a SQL repository is created on
    ``settings.database_url`` and its tables are created if missing. Stored
    API keys share that database; with an explicit chat repository and no
    settings repository they are kept in memory.
    """
    config_service = ConfigService.from_file(settings.model_catalog_path)
    config_service.validate_configuration()

    registry = ProviderRegistry(settings, transport_overrides=transport_overrides, factories=factories)
    provider_service = ProviderService(registry, environ=environ)
    chat_service = ChatService(
        provider_service,
        config_service,
        max_output_tokens=settings.max_output_tokens,
        temperature=settings.temperature,
        stream_buffer_size=settings.stream_buffer_size,
    )

    engine = None
    if repository is None:
        engine = create_db_engine(settings.database_url, echo=settings.debug)
        init_db(engine)
        session_factory = make_session_factory(engine)
        repository = SqlChatRepository(session_factory)
        if settings_repository is None:
            settings_repository = SqlSettingsRepository(session_factory)
    if settings_repository is None:
        settings_repository = InMemorySettingsRepository()
    settings_service = SettingsService(settings_repository, provider_service)

    logger.info(
        "Services wired",
        data={
            "repository": type(repository).__name__,
            "available_providers": provider_service.get_available_providers(),
        },
    )
    return Container(
        settings=settings,
        registry=registry,
        provider_service=provider_service,
        config_service=config_service,
        chat_service=chat_service,
        conversation_service=ConversationService(repository),
        settings_service=settings_service,
        engine=engine,
    )
