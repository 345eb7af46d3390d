"""Model catalog loading, caching and validation."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from chatrelay.core import ConfigNotFoundError, ConfigValidationError, get_logger
from chatrelay.providers.metadata import PROVIDER_METADATA

logger = get_logger(__name__)

CatalogLoader = Callable[[], Mapping[str, Any]]


@dataclass(frozen=True)
class ModelCatalogEntry:
    """Models offered for one provider."""

    provider_id: str
    display_name: str
    models: tuple[str, ...]
    default_model: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.display_name,
            "models": list(self.models),
            "defaultModel": self.default_model,
        }


def load_model_catalog(path: str | Path) -> dict[str, Any]:
    """Read the JSON catalog file."""
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except OSError as exc:
        raise ConfigValidationError(
            f"Model catalog could not be read: {exc}", details={"path": str(path)}
        ) from exc
    except json.JSONDecodeError as exc:
        raise ConfigValidationError(
            f"Model catalog is not valid JSON: {exc.msg}", details={"path": str(path)}
        ) from exc


def _parse_entry(provider_id: str, raw: Any) -> ModelCatalogEntry:
    if not isinstance(raw, Mapping):
        raise ConfigValidationError(
            f"Invalid configuration for provider: {provider_id}",
            details={"provider_id": provider_id},
        )
    name = raw.get("name")
    models = raw.get("models")
    default_model = raw.get("defaultModel")
    if (
        not isinstance(name, str)
        or not name
        or not isinstance(models, list)
        or not all(isinstance(model, str) for model in models)
        or not isinstance(default_model, str)
        or not default_model
    ):
        raise ConfigValidationError(
            f"Invalid configuration for provider: {provider_id}",
            details={"provider_id": provider_id},
        )
    return ModelCatalogEntry(
        provider_id=provider_id,
        display_name=name,
        models=tuple(models),
        default_model=default_model,
    )


class ConfigService:
    """
    Holds the provider -> model catalog for the life of the process.

    The loader runs exactly once, in the constructor. There is no reload:
    the cached mapping is read-only and safe to share between concurrent
    readers.
    """

    def __init__(self, loader: CatalogLoader):
        raw = loader()
        if not isinstance(raw, Mapping):
            raise ConfigValidationError("Model catalog must be a mapping of provider ids")

        entries = {provider_id: _parse_entry(provider_id, value) for provider_id, value in raw.items()}
        unknown = sorted(set(entries) - set(PROVIDER_METADATA))
        if unknown:
            logger.warning("Catalog lists providers without metadata", data={"providers": unknown})

        self._configs: Mapping[str, ModelCatalogEntry] = MappingProxyType(entries)
        logger.info("Model catalog loaded", data={"providers": list(entries)})

    @classmethod
    def from_file(cls, path: str | Path) -> ConfigService:
        return cls(lambda: load_model_catalog(path))

    def get_provider_config(self, provider_id: str | None) -> ModelCatalogEntry:
        if provider_id is None or provider_id not in self._configs:
            raise ConfigNotFoundError(provider_id)
        return self._configs[provider_id]

    def get_all_provider_configs(self) -> Mapping[str, ModelCatalogEntry]:
        return self._configs

    def validate_configuration(self) -> None:
        """
        Check every cached entry: models non-empty, default listed.

        Raises:
            ConfigValidationError: naming the first violation found.
        """
        for provider_id, entry in self._configs.items():
            if not entry.models:
                raise ConfigValidationError(
                    f"No models configured for provider: {provider_id}",
                    details={"provider_id": provider_id},
                )
            if entry.default_model not in entry.models:
                raise ConfigValidationError(
                    f"Default model {entry.default_model} not in models list for {provider_id}",
                    details={"provider_id": provider_id, "default_model": entry.default_model},
                )
