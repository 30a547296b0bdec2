"""Pytest configuration and fixtures.

Provides runtime-config and registry isolation, instant retry sleeps, and
fakes for the provider transports. Fixtures marked autouse apply everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from typing import Any

import httpx
import pytest

from modelrunner.config import ConfigurationValidator, RuntimeConfigManager
from modelrunner.providers.factory import ProviderFactory

CLOUDFLARE_MODEL = "@cf/meta/llama-3.1-8b-instruct"
GROQ_MODEL = "llama-3.1-8b-instant"

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeAIBinding:
    """Stand-in for the Workers AI ``AI`` binding.

    Pops one scripted item per ``run`` call: exceptions are raised, anything
    else is returned. An empty script returns ``{"response": "ok"}``.
    """

    script: list[Any] = field(default_factory=list)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def run(self, model: str, payload: dict[str, Any]) -> Any:
        self.calls.append((model, payload))
        if not self.script:
            return {"response": "ok"}
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@dataclass
class GroqTransport:
    """``httpx.MockTransport`` wrapper that records request bodies.

    Each scripted item is either an ``httpx.Response``, a JSON-able body
    (returned with status 200), or an exception raised from the transport.
    """

    script: list[Any] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.script.pop(0) if self.script else chat_body("ok")
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def chat_body(
    content: str | None,
    *,
    tool_calls: list[dict[str, Any]] | None = None,
    usage: dict[str, int] | None = None,
) -> dict[str, Any]:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    body: dict[str, Any] = {"choices": [{"index": 0, "message": message}]}
    if usage is not None:
        body["usage"] = usage
    return body


# =============================================================================
# Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def reset_runtime_config():
    """Runtime config is process-wide and never resets itself."""
    RuntimeConfigManager.reset()
    yield
    RuntimeConfigManager.reset()


@pytest.fixture(autouse=True)
def isolate_registries(monkeypatch):
    """Undo provider registrations made by a test."""
    monkeypatch.setattr(
        ConfigurationValidator,
        "_provider_configs",
        dict(ConfigurationValidator._provider_configs),
    )
    monkeypatch.setattr(
        ProviderFactory, "_providers", dict(ProviderFactory._providers)
    )


@pytest.fixture(autouse=True)
def isolate_provider_env(monkeypatch):
    """Keep real credentials out of ``from_env`` tests."""
    for key in list(os.environ.keys()):
        if key.startswith("GROQ_") or key == "AI":
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Make retry sleeps instant and record the requested delays."""
    delays: list[float] = []

    async def _fake_sleep(delay: float, *_args: Any, **_kwargs: Any) -> None:
        delays.append(delay)

    monkeypatch.setattr("modelrunner.retry.asyncio.sleep", _fake_sleep)
    return delays


@pytest.fixture
def binding() -> FakeAIBinding:
    return FakeAIBinding()


@pytest.fixture
def groq_transport(monkeypatch) -> GroqTransport:
    """Route every GroqProvider HTTP call through a recording mock transport."""
    from modelrunner.providers.groq import GroqProvider

    transport = GroqTransport()

    def _get_client(self: GroqProvider) -> httpx.AsyncClient:
        if self._client is None:
            self._client = transport.client()
        return self._client

    monkeypatch.setattr(GroqProvider, "_get_client", _get_client)
    return transport


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
