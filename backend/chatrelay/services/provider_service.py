"""Provider resolution and credential discovery."""

from __future__ import annotations

import os
from collections.abc import MutableMapping
from dataclasses import dataclass

from chatrelay.core import MissingCredentialsError, UnknownProviderError, get_logger
from chatrelay.providers.base import ModelHandle
from chatrelay.providers.metadata import (
    SUPPORTED_PROVIDERS,
    get_provider_display_name,
    get_provider_env_var,
    is_valid_provider,
)
from chatrelay.providers.registry import ProviderRegistry

logger = get_logger(__name__)

EXPERIMENTAL_MARKERS = ("-preview-", "-exp", "-experimental")


@dataclass(frozen=True)
class ApiKeyValidation:
    """Outcome of a credential presence check."""

    valid: bool
    message: str


class ProviderService:
    """
    Resolve (provider, model) pairs to invocable handles.

    Credentials are read from the environment on every call, so a key that
    is removed at runtime is noticed on the next resolution. Model ids are
    not checked against the catalog: providers may serve ids that are not
    listed there yet.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        environ: MutableMapping[str, str] | None = None,
    ):
        self.registry = registry
        self._environ = environ

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def _credential(self, provider_id: str) -> str | None:
        value = self.environ.get(get_provider_env_var(provider_id))
        return value.strip() if value and value.strip() else None

    def validate_provider(self, provider_id: str | None) -> bool:
        """True iff the id names a known provider; credentials are not consulted."""
        return is_valid_provider(provider_id)

    def validate_api_key(self, provider_id: str) -> ApiKeyValidation:
        if not self.validate_provider(provider_id):
            return ApiKeyValidation(valid=False, message=f"Unknown provider: {provider_id}")
        name = get_provider_display_name(provider_id)
        if self._credential(provider_id) is None:
            return ApiKeyValidation(valid=False, message=f"{name} API key not configured")
        return ApiKeyValidation(valid=True, message=f"{name} API key configured")

    def validate_all_providers(self) -> dict[str, ApiKeyValidation]:
        return {provider_id: self.validate_api_key(provider_id) for provider_id in SUPPORTED_PROVIDERS}

    def get_available_providers(self) -> list[str]:
        """Known providers whose credential is present, in catalog order."""
        return [
            provider_id
            for provider_id in SUPPORTED_PROVIDERS
            if self._credential(provider_id) is not None
        ]

    def get_provider_model(self, provider_id: str | None, model_id: str) -> ModelHandle:
        """
        Bind a provider adapter to a model id.

        Raises:
            UnknownProviderError: provider id is not in the static set.
            MissingCredentialsError: the provider's key variable is unset or blank.
        """
        if not self.validate_provider(provider_id):
            raise UnknownProviderError(provider_id)

        api_key = self._credential(provider_id)
        if api_key is None:
            raise MissingCredentialsError(
                f"Provider {provider_id} is not configured (API key missing)",
                details={"provider_id": provider_id, "env_var": get_provider_env_var(provider_id)},
            )

        if any(marker in model_id for marker in EXPERIMENTAL_MARKERS):
            logger.warning(
                "Model appears to be experimental",
                data={"provider": provider_id, "model": model_id},
            )

        return ModelHandle(
            provider_id=provider_id,
            model_id=model_id,
            provider=self.registry.adapter(provider_id, api_key),
            display_name=get_provider_display_name(provider_id),
        )

    async def aclose(self) -> None:
        await self.registry.aclose()
