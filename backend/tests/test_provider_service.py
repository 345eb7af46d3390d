"""Tests for provider resolution and credential discovery."""

from __future__ import annotations

import asyncio
import itertools
import logging

import pytest

from chatrelay.config import Settings
from chatrelay.core import ErrorCode, MissingCredentialsError, UnknownProviderError
from chatrelay.providers import OpenAICompatProvider, ProviderRegistry
from chatrelay.providers.metadata import PROVIDER_METADATA, SUPPORTED_PROVIDERS
from chatrelay.services import ProviderService

from fakes import ALL_KEYS, ScriptedProvider, scripted_factories


def _service(settings: Settings, environ: dict[str, str]) -> ProviderService:
    return ProviderService(ProviderRegistry(settings), environ=environ)


@pytest.mark.parametrize("size", range(len(SUPPORTED_PROVIDERS) + 1))
def test_available_providers_match_credential_subsets(settings: Settings, size: int) -> None:
    for subset in itertools.combinations(SUPPORTED_PROVIDERS, size):
        environ = {PROVIDER_METADATA[provider_id].env_var: "key" for provider_id in subset}
        assert _service(settings, environ).get_available_providers() == list(subset)


def test_blank_credentials_are_treated_as_missing(settings: Settings) -> None:
    service = _service(settings, {"OPENAI_API_KEY": "   ", "ANTHROPIC_API_KEY": "key"})

    assert service.get_available_providers() == ["anthropic"]
    with pytest.raises(MissingCredentialsError):
        service.get_provider_model("openai", "gpt-4o")


def test_validate_provider_ignores_credentials(settings: Settings) -> None:
    service = _service(settings, {})

    assert all(service.validate_provider(provider_id) for provider_id in SUPPORTED_PROVIDERS)
    assert not service.validate_provider("mistral")
    assert not service.validate_provider(None)


def test_unknown_provider_is_rejected_before_credentials(settings: Settings) -> None:
    service = _service(settings, ALL_KEYS)

    with pytest.raises(UnknownProviderError) as exc_info:
        service.get_provider_model("mistral", "mistral-large")

    assert exc_info.value.code == ErrorCode.UNKNOWN_PROVIDER
    assert exc_info.value.status_code == 400


def test_missing_credentials_names_the_variable(settings: Settings) -> None:
    service = _service(settings, {})

    with pytest.raises(MissingCredentialsError) as exc_info:
        service.get_provider_model("google", "gemini-2.5-flash")

    assert exc_info.value.details["env_var"] == "GOOGLE_GENERATIVE_AI_API_KEY"


@pytest.mark.asyncio
async def test_handle_binds_model_without_catalog_check(settings: Settings) -> None:
    service = _service(settings, ALL_KEYS)

    handle = service.get_provider_model("deepseek", "deepseek-not-in-catalog")

    assert handle.provider_id == "deepseek"
    assert handle.model_id == "deepseek-not-in-catalog"
    assert handle.display_name == "DeepSeek"
    assert isinstance(handle.provider, OpenAICompatProvider)
    await service.aclose()


@pytest.mark.asyncio
async def test_adapters_are_reused_across_handles(settings: Settings) -> None:
    service = _service(settings, ALL_KEYS)

    first = service.get_provider_model("openai", "gpt-4o")
    second = service.get_provider_model("openai", "gpt-4o-mini")

    assert first.provider is second.provider
    await service.aclose()


def test_removed_credential_is_noticed_immediately(settings: Settings) -> None:
    environ = {"OPENAI_API_KEY": "key"}
    service = _service(settings, environ)
    service.get_provider_model("openai", "gpt-4o")

    del environ["OPENAI_API_KEY"]

    assert service.get_available_providers() == []
    with pytest.raises(MissingCredentialsError):
        service.get_provider_model("openai", "gpt-4o")


def test_validate_api_key_reports_each_provider(settings: Settings) -> None:
    service = _service(settings, {"ANTHROPIC_API_KEY": "key"})

    results = service.validate_all_providers()

    assert set(results) == set(SUPPORTED_PROVIDERS)
    assert results["anthropic"].valid
    assert results["anthropic"].message == "Anthropic API key configured"
    assert not results["openai"].valid
    assert not service.validate_api_key("mistral").valid


def test_experimental_model_logs_warning(settings: Settings, caplog: pytest.LogCaptureFixture) -> None:
    provider = ScriptedProvider(["ok"], provider_id="google", display_name="Google")
    service = ProviderService(
        ProviderRegistry(settings, factories=scripted_factories({"google": provider})),
        environ=ALL_KEYS,
    )

    with caplog.at_level(logging.WARNING, logger="chatrelay.services.provider_service"):
        service.get_provider_model("google", "gemini-2.5-flash-lite-preview-06-17")

    assert any("experimental" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_registry_aclose_closes_adapters(settings: Settings) -> None:
    provider = ScriptedProvider(["ok"])
    registry = ProviderRegistry(settings, factories=scripted_factories({"openai": provider}))
    registry.adapter("openai", "key")

    await registry.aclose()

    assert provider.closed


@pytest.mark.asyncio
async def test_rotated_credential_replaces_and_closes_stale_adapter(settings: Settings) -> None:
    built: list[ScriptedProvider] = []

    def factory(settings, api_key, transport):
        built.append(ScriptedProvider([api_key]))
        return built[-1]

    environ = {"OPENAI_API_KEY": "old-key"}
    service = ProviderService(ProviderRegistry(settings, factories={"openai": factory}), environ=environ)
    old = service.get_provider_model("openai", "gpt-4o").provider

    environ["OPENAI_API_KEY"] = "new-key"
    new = service.get_provider_model("openai", "gpt-4o").provider
    await asyncio.sleep(0)

    assert new is not old
    assert old.closed
    assert not new.closed
    assert service.get_provider_model("openai", "gpt-4o").provider is new
    assert len(built) == 2

    await service.aclose()
    assert new.closed
