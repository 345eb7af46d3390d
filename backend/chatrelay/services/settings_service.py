"""API key management: masked status, storing and removing keys."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chatrelay.core import UnknownProviderError, ValidationError, get_logger
from chatrelay.db.repositories.settings import SettingsRepository
from chatrelay.providers.metadata import SUPPORTED_PROVIDERS, get_provider_env_var
from chatrelay.services.provider_service import ApiKeyValidation, ProviderService

logger = get_logger(__name__)

MIN_API_KEY_LENGTH = 10


def mask_api_key(key: str) -> str:
    """Show the first 7 and last 4 characters of keys long enough to hide."""
    if len(key) < 16:
        return "***"
    return f"{key[:7]}***...***{key[-4:]}"


@dataclass(frozen=True)
class ApiKeyStatus:
    configured: bool
    masked_key: str | None = None
    source: str | None = None  # "stored" or "environment"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"configured": self.configured}
        if self.configured:
            data["maskedKey"] = self.masked_key
            data["source"] = self.source
        return data


class SettingsService:
    """
    Stored API keys, kept in step with the provider environment.

    Credentials are still resolved by ProviderService from each provider's
    environment variable. Storing a key writes it to that variable as well;
    deleting a stored key removes it. Stored keys are copied into the
    environment once, when the service is built.
    """

    def __init__(self, repository: SettingsRepository, provider_service: ProviderService):
        self.repository = repository
        self.provider_service = provider_service
        self.sync_to_environment()

    def sync_to_environment(self) -> list[str]:
        """Copy every stored key into its provider's variable; return the providers synced."""
        synced = []
        for provider_id, key in self.repository.get_all_api_keys().items():
            if key:
                self.provider_service.environ[get_provider_env_var(provider_id)] = key
                synced.append(provider_id)
        if synced:
            logger.info("Stored API keys loaded", data={"providers": synced})
        return synced

    def _require_provider(self, provider_id: str) -> None:
        if not self.provider_service.validate_provider(provider_id):
            raise UnknownProviderError(provider_id)

    def get_api_keys(self) -> dict[str, ApiKeyStatus]:
        stored = self.repository.get_all_api_keys()
        statuses: dict[str, ApiKeyStatus] = {}
        for provider_id in SUPPORTED_PROVIDERS:
            key = stored.get(provider_id)
            source = "stored"
            if not key:
                key = (self.provider_service.environ.get(get_provider_env_var(provider_id)) or "").strip()
                source = "environment"
            statuses[provider_id] = (
                ApiKeyStatus(configured=True, masked_key=mask_api_key(key), source=source)
                if key
                else ApiKeyStatus(configured=False)
            )
        return statuses

    def set_api_key(self, provider_id: str, key: str) -> ApiKeyValidation:
        """
        Store a key and make it the provider's active credential.

        A key that fails the format check is not stored, and the previous
        credential stays in effect.

        Raises:
            UnknownProviderError: provider id is not in the static set.
            ValidationError: key is empty.
        """
        self._require_provider(provider_id)
        key = (key or "").strip()
        if not key:
            raise ValidationError("An API key is required", details={"provider_id": provider_id})
        if len(key) < MIN_API_KEY_LENGTH:
            logger.warning("Rejected malformed API key", data={"provider": provider_id})
            return ApiKeyValidation(valid=False, message=f"API key for {provider_id} is too short")

        self.repository.set_api_key(provider_id, key)
        self.provider_service.environ[get_provider_env_var(provider_id)] = key
        logger.info("API key stored", data={"provider": provider_id})
        return self.provider_service.validate_api_key(provider_id)

    def delete_api_key(self, provider_id: str) -> None:
        """Remove the stored key and the provider's active credential."""
        self._require_provider(provider_id)
        self.repository.delete_api_key(provider_id)
        self.provider_service.environ.pop(get_provider_env_var(provider_id), None)
        logger.info("API key deleted", data={"provider": provider_id})
