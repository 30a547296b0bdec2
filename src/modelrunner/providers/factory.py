"""Provider factory: identifier to provider-class registry."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from modelrunner.errors import ConfigurationError
from modelrunner.providers.cloudflare import CloudflareProvider
from modelrunner.providers.groq import GroqProvider

if TYPE_CHECKING:
    from collections.abc import Mapping

    from modelrunner.providers.base import ModelProvider, ProviderClass


class ProviderFactory:
    """Registry of constructible providers, open for runtime registration."""

    _providers: dict[str, ProviderClass] = {
        "cloudflare": CloudflareProvider,
        "groq": GroqProvider,
    }
    _lock = threading.Lock()

    @classmethod
    def create_provider(
        cls, provider_type: str, environment: Mapping[str, Any]
    ) -> ModelProvider:
        """Instantiate the provider registered under *provider_type*.

        Raises:
            ConfigurationError: The identifier is not registered.
        """
        provider_cls = cls._providers.get(provider_type)
        if provider_cls is None:
            raise ConfigurationError(
                f"Unknown provider: {provider_type}. "
                f"Supported providers: {', '.join(cls._providers)}",
                provider_type,
            )
        return provider_cls(environment)

    @classmethod
    def register_provider(cls, provider_type: str, provider_cls: ProviderClass) -> None:
        with cls._lock:
            updated = dict(cls._providers)
            updated[provider_type] = provider_cls
            cls._providers = updated

    @classmethod
    def get_supported_providers(cls) -> list[str]:
        return list(cls._providers)

    @classmethod
    def is_provider_supported(cls, provider_type: str) -> bool:
        return provider_type in cls._providers
