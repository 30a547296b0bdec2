"""Groq provider (OpenAI-compatible chat completions over HTTP)."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import logging
from typing import Any

import httpx

from modelrunner.config import RuntimeConfigManager
from modelrunner.errors import ProviderError, describe_error
from modelrunner.providers import _utils
from modelrunner.providers._errors import create_error, require_env_keys
from modelrunner.providers.models import (
    ModelSelector,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
)
from modelrunner.retry import run_with_retry

logger = logging.getLogger(__name__)

PROVIDER_TYPE = "groq"
API_ENDPOINT = "https://api.groq.com/openai/v1/chat/completions"

#: Statuses worth repeating at the transport level; other 4xx fail fast.
_TRANSPORT_RETRY_STATUSES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

GROQ_MODELS: tuple[str, ...] = (
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "meta-llama/llama-guard-4-12b",
    "openai/gpt-oss-120b",
    "openai/gpt-oss-20b",
    "whisper-large-v3",
    "whisper-large-v3-turbo",
)


def groq_model(model: str) -> ModelSelector:
    """Return a selector for a Groq-hosted model (see ``GROQ_MODELS``)."""
    return ModelSelector(provider=PROVIDER_TYPE, model=model)


def _is_retryable_transport_error(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSPORT_RETRY_STATUSES
    return True


class GroqProvider:
    """Groq chat-completions endpoint with bearer-token auth."""

    provider_type = PROVIDER_TYPE

    def __init__(
        self,
        environment: Mapping[str, Any],
        *,
        endpoint: str = API_ENDPOINT,
    ) -> None:
        """Validate that ``GROQ_API_KEY`` is present."""
        require_env_keys(environment, ["GROQ_API_KEY"], provider=self.provider_type)
        self.environment = environment
        self.endpoint = endpoint
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the HTTP client using the runtime timeout."""
        if self._client is None:
            timeout_s = RuntimeConfigManager.get_config().get("timeout_s", 30.0)
            self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    def supports_json_mode(self) -> bool:
        return True

    def supports_tools(self) -> bool:
        return True

    def supports_streaming(self) -> bool:
        return True

    async def execute(self, request: ProviderRequest) -> ProviderResponse:
        """POST the chat completion and normalize the reply."""
        payload = self.build_payload(request)

        try:
            data = await self._make_request(payload)
        except asyncio.CancelledError:
            raise
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text
            raise create_error(
                f"Groq API Error ({status}): {body}. Model: {request.model}",
                provider=self.provider_type,
                status_code=status,
                cause=body,
            ) from e
        except ProviderError:
            raise
        except Exception as e:
            raise create_error(
                f"Groq execution failed: {describe_error(e)}",
                provider=self.provider_type,
                cause=e,
            ) from e

        return self._parse_response(data)

    def build_payload(self, request: ProviderRequest) -> dict[str, Any]:
        """Build the JSON body.

        Tool mode and forced-JSON-object mode are mutually exclusive on this
        backend: with tools present ``response_format`` is never sent.
        """
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [m.to_dict() for m in request.messages],
            **request.options,
        }
        has_tools = bool(request.options.get("tools"))
        if has_tools:
            payload["tool_choice"] = "auto"
        if request.json_mode and not has_tools:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        client = self._get_client()
        response = await client.post(
            self.endpoint,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.environment['GROQ_API_KEY']}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response

    async def _make_request(self, payload: dict[str, Any]) -> Any:
        response = await run_with_retry(
            lambda: self._post(payload),
            3,
            1.0,
            should_retry=_is_retryable_transport_error,
        )
        if response is None:
            raise create_error(
                "Groq execution failed: No response from Groq API",
                provider=self.provider_type,
            )
        return response.json()

    @staticmethod
    def extract_content(data: Any) -> str:
        message = _first_message(data)
        content = message.get("content") if message else None
        return content if isinstance(content, str) else ""

    @staticmethod
    def extract_tool_calls(data: Any) -> list[ToolCall]:
        message = _first_message(data)
        raw_calls = message.get("tool_calls") if message else None
        if not isinstance(raw_calls, list):
            return []
        return [ToolCall.from_dict(c) for c in raw_calls if isinstance(c, Mapping)]

    def _parse_response(self, data: Any) -> ProviderResponse:
        tool_calls = _utils.filter_duplicate_tool_calls(self.extract_tool_calls(data))
        usage_raw = data.get("usage") if isinstance(data, Mapping) else None
        if isinstance(usage_raw, Mapping):
            usage = _utils.build_usage(
                int(usage_raw.get("prompt_tokens") or 0),
                int(usage_raw.get("completion_tokens") or 0),
                int(usage_raw.get("total_tokens") or 0),
            )
        else:
            usage = _utils.build_usage(0, 0, 0)

        return ProviderResponse(
            content=self.extract_content(data),
            tool_calls=tool_calls,
            raw=data,
            usage=usage,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if one was created."""
        client = self._client
        if client is None:
            return
        self._client = None
        await client.aclose()


def _first_message(data: Any) -> Mapping[str, Any] | None:
    if not isinstance(data, Mapping):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, Mapping):
        return None
    message = first.get("message")
    return message if isinstance(message, Mapping) else None
