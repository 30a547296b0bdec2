"""Provider protocol: minimal interface for inference backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from modelrunner.providers.models import ProviderRequest, ProviderResponse


@runtime_checkable
class ModelProvider(Protocol):
    """Execution strategy for one backend.

    Concrete providers compose the free helpers in ``_errors`` and ``_utils``
    rather than inheriting shared behavior.
    """

    provider_type: str

    async def execute(self, request: ProviderRequest) -> ProviderResponse:
        """Run one call against the backend."""
        ...

    def supports_json_mode(self) -> bool:
        """Whether forced JSON-object output can be requested."""
        ...

    def supports_tools(self) -> bool:
        """Whether tool declarations are accepted."""
        ...


class ProviderClass(Protocol):
    """Anything the factory can instantiate from an environment mapping."""

    def __call__(self, environment: Mapping[str, Any]) -> ModelProvider: ...
