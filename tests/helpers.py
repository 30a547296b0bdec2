"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off provider classes as coverage expands.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from modelrunner.providers.models import ProviderRequest, ProviderResponse


@dataclass
class ScriptedProvider:
    """Provider double returning a scripted sequence of results/exceptions.

    Instances are built by the factory from an environment mapping, so the
    script lives on the class: subclass and set ``script``, or use
    ``scripted_provider()``. Every created instance is recorded in
    ``instances`` for assertions.
    """

    environment: Mapping[str, Any]
    provider_type: ClassVar[str] = "scripted"
    json_mode: ClassVar[bool] = True
    tools: ClassVar[bool] = True
    script: ClassVar[list[Any]] = []
    instances: ClassVar[list[ScriptedProvider]] = []

    requests: list[ProviderRequest] = field(default_factory=list)
    closed: bool = False

    def __post_init__(self) -> None:
        type(self).instances.append(self)

    def supports_json_mode(self) -> bool:
        return self.json_mode

    def supports_tools(self) -> bool:
        return self.tools

    async def execute(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        if not self.script:
            return ProviderResponse(content="ok")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, ProviderResponse):
            return item
        return ProviderResponse(**item)

    async def aclose(self) -> None:
        self.closed = True


def scripted_provider(
    name: str = "scripted",
    *script: Any,
    json_mode: bool = True,
    tools: bool = True,
) -> type[ScriptedProvider]:
    """Return a fresh ScriptedProvider subclass with its own script and flags."""
    return type(
        f"Scripted_{name}",
        (ScriptedProvider,),
        {
            "provider_type": name,
            "json_mode": json_mode,
            "tools": tools,
            "script": list(script),
            "instances": [],
        },
    )
