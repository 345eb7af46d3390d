from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chatrelay.config import Settings
from chatrelay.container import Container, build_container
from chatrelay.db import create_db_engine, init_db, make_session_factory
from chatrelay.db.repositories import ChatRepository, InMemoryChatRepository, SqlChatRepository
from chatrelay.main import create_app
from chatrelay.providers.registry import ProviderRegistry
from chatrelay.services import ChatService, ConfigService, ConversationService, ProviderService
from fakes import ScriptedProvider, scripted_factories


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'chatrelay.db'}",
        stream_buffer_size=4,
    )


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider(["Hello", ", ", "world"])


@pytest.fixture
def provider_service(settings: Settings, provider: ScriptedProvider) -> ProviderService:
    registry = ProviderRegistry(settings, factories=scripted_factories({"openai": provider}))
    return ProviderService(registry, environ={"OPENAI_API_KEY": "sk-test"})


@pytest.fixture
def config_service(settings: Settings) -> ConfigService:
    return ConfigService.from_file(settings.model_catalog_path)


@pytest.fixture
def chat_service(provider_service: ProviderService, config_service: ConfigService) -> ChatService:
    return ChatService(provider_service, config_service, stream_buffer_size=4)


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path: Path) -> Iterator[ChatRepository]:
    if request.param == "memory":
        yield InMemoryChatRepository()
        return
    engine = create_db_engine(f"sqlite:///{tmp_path / 'repo.db'}")
    init_db(engine)
    yield SqlChatRepository(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def conversation_service(repository: ChatRepository) -> ConversationService:
    return ConversationService(repository)


@pytest.fixture
def container(settings: Settings, provider: ScriptedProvider) -> Iterator[Container]:
    built = build_container(
        settings,
        environ={"OPENAI_API_KEY": "sk-test"},
        factories=scripted_factories({"openai": provider}),
    )
    yield built
    if built.engine is not None:
        built.engine.dispose()


@pytest.fixture
def client(container: Container) -> Iterator[TestClient]:
    app = create_app(container=container)
    with TestClient(app) as test_client:
        yield test_client
