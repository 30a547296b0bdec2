"""Shared provider-side error helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from modelrunner.errors import ConfigurationError, ProviderError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


def require_env_keys(
    environment: Mapping[str, Any], keys: Iterable[str], *, provider: str
) -> None:
    """Raise ConfigurationError listing every key absent (or empty) in *environment*."""
    missing = [key for key in keys if not environment.get(key)]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}",
            provider,
        )


def create_error(
    message: str,
    *,
    provider: str,
    status_code: int | None = None,
    cause: Any = None,
) -> ProviderError:
    """Build a ProviderError tagged with *provider*."""
    return ProviderError(message, provider, status_code=status_code, cause=cause)
