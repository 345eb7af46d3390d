"""Static provider catalog: id, display name and credential variable."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class ProviderMetadata:
    """Static description of a supported provider."""

    id: str
    display_name: str
    env_var: str


PROVIDER_METADATA: MappingProxyType[str, ProviderMetadata] = MappingProxyType(
    {
        "openai": ProviderMetadata("openai", "OpenAI", "OPENAI_API_KEY"),
        "anthropic": ProviderMetadata("anthropic", "Anthropic", "ANTHROPIC_API_KEY"),
        "google": ProviderMetadata("google", "Google", "GOOGLE_GENERATIVE_AI_API_KEY"),
        "deepseek": ProviderMetadata("deepseek", "DeepSeek", "DEEPSEEK_API_KEY"),
        "openrouter": ProviderMetadata("openrouter", "OpenRouter", "OPENROUTER_API_KEY"),
    }
)

SUPPORTED_PROVIDERS: tuple[str, ...] = tuple(PROVIDER_METADATA)


def is_valid_provider(provider_id: str | None) -> bool:
    return provider_id is not None and provider_id in PROVIDER_METADATA


def get_provider_display_name(provider_id: str) -> str:
    return PROVIDER_METADATA[provider_id].display_name


def get_provider_env_var(provider_id: str) -> str:
    return PROVIDER_METADATA[provider_id].env_var
