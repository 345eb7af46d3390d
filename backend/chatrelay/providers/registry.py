"""Adapter registry keyed by provider id."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping

import httpx

from chatrelay.config import Settings
from chatrelay.core import UnknownProviderError, get_logger
from chatrelay.providers.anthropic import AnthropicProvider
from chatrelay.providers.base import BaseProvider
from chatrelay.providers.google import GoogleProvider
from chatrelay.providers.metadata import PROVIDER_METADATA
from chatrelay.providers.openai_compat import OpenAICompatProvider

logger = get_logger(__name__)

AdapterFactory = Callable[[Settings, str, httpx.AsyncBaseTransport | None], BaseProvider]


def _openai(settings: Settings, api_key: str, transport: httpx.AsyncBaseTransport | None) -> BaseProvider:
    return OpenAICompatProvider(
        provider_id="openai",
        display_name="OpenAI",
        base_url=settings.openai_base_url,
        api_key=api_key,
        timeout=settings.provider_timeout_seconds,
        transport=transport,
    )


def _deepseek(settings: Settings, api_key: str, transport: httpx.AsyncBaseTransport | None) -> BaseProvider:
    return OpenAICompatProvider(
        provider_id="deepseek",
        display_name="DeepSeek",
        base_url=settings.deepseek_base_url,
        api_key=api_key,
        timeout=settings.provider_timeout_seconds,
        transport=transport,
    )


def _openrouter(settings: Settings, api_key: str, transport: httpx.AsyncBaseTransport | None) -> BaseProvider:
    return OpenAICompatProvider(
        provider_id="openrouter",
        display_name="OpenRouter",
        base_url=settings.openrouter_base_url,
        api_key=api_key,
        timeout=settings.provider_timeout_seconds,
        transport=transport,
        extra_headers={"X-Title": "chatrelay"},
    )


def _anthropic(settings: Settings, api_key: str, transport: httpx.AsyncBaseTransport | None) -> BaseProvider:
    return AnthropicProvider(
        base_url=settings.anthropic_base_url,
        api_key=api_key,
        timeout=settings.provider_timeout_seconds,
        transport=transport,
    )


def _google(settings: Settings, api_key: str, transport: httpx.AsyncBaseTransport | None) -> BaseProvider:
    return GoogleProvider(
        base_url=settings.google_base_url,
        api_key=api_key,
        timeout=settings.provider_timeout_seconds,
        transport=transport,
    )


ADAPTER_FACTORIES: Mapping[str, AdapterFactory] = {
    "openai": _openai,
    "anthropic": _anthropic,
    "google": _google,
    "deepseek": _deepseek,
    "openrouter": _openrouter,
}


class ProviderRegistry:
    """
    Instantiate adapters lazily and keep one per provider.

    The cached adapter is bound to the credential it was built with. When a
    provider's credential changes, the adapter is rebuilt and the stale one
    is closed.
    """

    def __init__(
        self,
        settings: Settings,
        transport_overrides: dict[str, httpx.AsyncBaseTransport] | None = None,
        factories: Mapping[str, AdapterFactory] | None = None,
    ):
        self.settings = settings
        self._transport_overrides = transport_overrides or {}
        self._factories = dict(factories if factories is not None else ADAPTER_FACTORIES)
        self._adapters: dict[str, tuple[str, BaseProvider]] = {}
        self._retired: list[BaseProvider] = []
        self._closing: set[asyncio.Task[None]] = set()

        missing = set(PROVIDER_METADATA) - set(self._factories)
        if missing:
            logger.warning("Providers without an adapter", data={"providers": sorted(missing)})

    def adapter(self, provider_id: str, api_key: str) -> BaseProvider:
        """Return the cached adapter for a provider, creating it on first use."""
        cached = self._adapters.get(provider_id)
        if cached is not None:
            cached_key, adapter = cached
            if cached_key == api_key:
                return adapter

        factory = self._factories.get(provider_id)
        if factory is None:
            raise UnknownProviderError(provider_id)
        adapter = factory(self.settings, api_key, self._transport_overrides.get(provider_id))
        self._adapters[provider_id] = (api_key, adapter)

        if cached is not None:
            logger.info("Provider credential changed", data={"provider": provider_id})
            self._retire(cached[1])
        else:
            logger.info("Provider adapter created", data={"provider": provider_id})
        return adapter

    def _retire(self, adapter: BaseProvider) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop to close on; closed with the registry instead
            self._retired.append(adapter)
            return
        task = loop.create_task(adapter.aclose())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def aclose(self) -> None:
        """Close all adapter clients."""
        adapters = [adapter for _, adapter in self._adapters.values()] + self._retired
        self._adapters.clear()
        self._retired.clear()
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        for adapter in adapters:
            await adapter.aclose()
