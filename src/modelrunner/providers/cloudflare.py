"""Cloudflare Workers AI provider (bound-callable transport)."""

from __future__ import annotations

from collections.abc import Mapping
import inspect
import json
import logging
from typing import Any

from modelrunner.errors import describe_error
from modelrunner.providers import _utils
from modelrunner.providers._errors import create_error, require_env_keys
from modelrunner.providers.models import (
    FunctionCall,
    ModelSelector,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
)
from modelrunner.retry import run_with_retry

logger = logging.getLogger(__name__)

PROVIDER_TYPE = "cloudflare"


def cloudflare_model(model: str) -> ModelSelector:
    """Return a selector for a Workers AI model, e.g. ``@cf/meta/llama-3-8b``."""
    return ModelSelector(provider=PROVIDER_TYPE, model=model)


class CloudflareProvider:
    """Workers AI through a bound ``AI`` object.

    The binding may expose ``run(model, payload)`` (sync or async) or be a
    callable with the same signature. It reports no token usage.
    """

    provider_type = PROVIDER_TYPE

    def __init__(self, environment: Mapping[str, Any]) -> None:
        """Validate that the ``AI`` binding is present."""
        require_env_keys(environment, ["AI"], provider=self.provider_type)
        self.environment = environment

    def supports_json_mode(self) -> bool:
        return True

    def supports_tools(self) -> bool:
        return True

    def supports_streaming(self) -> bool:
        return False

    async def execute(self, request: ProviderRequest) -> ProviderResponse:
        """Run the model through the binding with transport-level retries."""
        payload: dict[str, Any] = {
            "messages": [m.to_dict() for m in request.messages],
            **request.options,
        }
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            response = await run_with_retry(
                lambda: self._invoke(request.model, payload), 3, 1.0
            )
        except Exception as e:
            raise create_error(
                f"Cloudflare AI execution failed: {describe_error(e)}",
                provider=self.provider_type,
                cause=e,
            ) from e

        return self._parse_response(response)

    async def _invoke(self, model: str, payload: dict[str, Any]) -> Any:
        binding = self.environment["AI"]
        run = getattr(binding, "run", None)
        target = run if callable(run) else binding
        result = target(model, payload)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _parse_response(self, response: Any) -> ProviderResponse:
        return ProviderResponse(
            content=self.extract_content(response),
            tool_calls=self.extract_tool_calls(response),
            raw=response,
            usage=_utils.build_usage(0, 0, 0),
        )

    @staticmethod
    def extract_content(response: Any) -> str:
        """Return the text of a binding response.

        Strings pass through; mappings (or objects) with a ``response`` field
        yield that field as text. Any other shape yields an empty string.
        """
        if isinstance(response, str):
            return response
        if isinstance(response, Mapping):
            if "response" in response:
                value = response["response"]
                return _stringify(value)
            return ""
        if response is not None and hasattr(response, "response"):
            return _stringify(response.response)
        return ""

    @staticmethod
    def extract_tool_calls(response: Any) -> list[ToolCall]:
        """Return tool calls from a mapping or object ``tool_calls`` field.

        Entries may be mappings or objects exposing ``name``/``arguments``.
        """
        raw_calls = _field(response, "tool_calls")
        if not isinstance(raw_calls, list) or not raw_calls:
            return []

        calls: list[ToolCall] = []
        for index, entry in enumerate(raw_calls):
            args = _field(entry, "arguments")
            args_str = args if isinstance(args, str) else json.dumps(args)
            calls.append(
                ToolCall(
                    id=f"tool-call-{index}",
                    function=FunctionCall(
                        name=str(_field(entry, "name") or ""), arguments=args_str
                    ),
                )
            )
        logger.debug("Extracted %d tool call(s) from binding response", len(calls))
        return calls


def _field(obj: Any, name: str) -> Any:
    """Read *name* as a mapping key or, failing that, as an attribute."""
    if isinstance(obj, Mapping):
        return obj.get(name)
    if obj is None or isinstance(obj, str):
        return None
    return getattr(obj, name, None)


def _stringify(value: Any) -> str:
    # Falsy values (None, "", 0) read as no content.
    if not value:
        return ""
    return value if isinstance(value, str) else str(value)
