"""The runner: single public entry point for a model call.

Flow per call: validate (provider, credentials, model name, options) ->
construct provider -> capability check -> retried execute -> normalize.
Any failure is re-raised once, tagged with provider and context.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import logging
import os
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values

from modelrunner.config import (
    ConfigurationValidator,
    ProviderConfigSchema,
    RuntimeConfigManager,
    SupportedFeatures,
)
from modelrunner.errors import ConfigurationError, wrap_provider_error
from modelrunner.providers.factory import ProviderFactory
from modelrunner.providers.models import Message, ModelSelector, ProviderRequest
from modelrunner.result import ModelResult, ResponseBuilder
from modelrunner.retry import RetryConfig, execute_with_retry

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from modelrunner.providers.base import ModelProvider, ProviderClass

logger = logging.getLogger(__name__)

_RUN_CONTEXT = "ModelRunner.run"

MessageInput = Message | Mapping[str, Any]
SelectorInput = ModelSelector | Mapping[str, str]


def _normalize_messages(messages: Sequence[MessageInput]) -> tuple[Message, ...]:
    return tuple(
        m if isinstance(m, Message) else Message.from_dict(m) for m in messages
    )


def _normalize_selector(model: SelectorInput) -> ModelSelector:
    if isinstance(model, ModelSelector):
        return model
    return ModelSelector(provider=model["provider"], model=model["model"])


class ModelRunner:
    """Run chat calls against any registered provider.

    Example:
        runner = ModelRunner({"GROQ_API_KEY": "..."})
        result = await runner.run(
            [Message(role="user", content="Hi")],
            groq_model("llama-3.1-8b-instant"),
        )
        print(result.content)
    """

    def __init__(self, environment: Mapping[str, Any]) -> None:
        """Keep the credential mapping consulted by validation and providers."""
        self.environment = environment

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> ModelRunner:
        """Build a runner from a ``.env`` file overlaid by ``os.environ``."""
        values: dict[str, Any] = {
            k: v for k, v in dotenv_values(dotenv_path).items() if v is not None
        }
        values.update(os.environ)
        return cls(values)

    async def run(
        self,
        messages: Sequence[MessageInput],
        model: SelectorInput,
        json_mode: bool = False,
        options: Mapping[str, Any] | None = None,
    ) -> ModelResult:
        """Execute one call and return the normalized result.

        Args:
            messages: Conversation turns, in order.
            model: Provider identifier and model name.
            json_mode: Ask the backend for a bare JSON object.
            options: Passthrough generation options (temperature, max_tokens,
                tools, ...).

        Returns:
            ModelResult with content, tool calls, raw payload and usage.

        Raises:
            ConfigurationError: Validation or capability failure.
            ProviderError: Execution failure after retries.
        """
        selector = _normalize_selector(model)
        provider_id = selector.provider
        opts = dict(options or {})

        try:
            self._validate_inputs(provider_id, selector.model, opts)
            request = ProviderRequest(
                messages=_normalize_messages(messages),
                json_mode=json_mode,
                options=opts,
                model=selector.model,
            )

            provider = ProviderFactory.create_provider(provider_id, self.environment)
            try:
                self._validate_capabilities(provider, json_mode, opts)

                retries = RuntimeConfigManager.get_config().get("retries")
                response = await execute_with_retry(
                    lambda: provider.execute(request),
                    RetryConfig.from_runtime(retries),
                    f"ModelRunner execution with {provider_id}",
                )
            finally:
                await _close_provider(provider)

            return (
                ResponseBuilder.create()
                .set_content(response.content)
                .set_tool_calls(response.tool_calls)
                .set_raw_response(response.raw)
                .set_usage(response.usage)
                .set_json_mode(json_mode)
                .build()
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(e, provider_id, _RUN_CONTEXT) from e

    @staticmethod
    def get_supported_providers() -> list[str]:
        return ProviderFactory.get_supported_providers()

    @staticmethod
    def get_provider_capabilities(provider: str) -> SupportedFeatures | None:
        schema = ConfigurationValidator.get_provider_config(provider)
        return schema.supported_features if schema is not None else None

    @staticmethod
    def update_runtime_config(updates: Mapping[str, Any]) -> None:
        RuntimeConfigManager.update_config(updates)

    @staticmethod
    def register_provider(
        provider: str,
        provider_cls: ProviderClass,
        schema: ProviderConfigSchema | None = None,
    ) -> None:
        """Register a backend with both the factory and the config registry.

        Without *schema*, an existing schema for *provider* is kept; otherwise
        one with no required credentials and no declared features is stored.
        """
        if schema is None:
            schema = ConfigurationValidator.get_provider_config(
                provider
            ) or ProviderConfigSchema(
                required_env_vars=(),
                supported_features=SupportedFeatures(
                    json_mode=False, tools=False, streaming=False
                ),
            )
        ConfigurationValidator.register_provider_config(provider, schema)
        ProviderFactory.register_provider(provider, provider_cls)

    def _validate_inputs(
        self, provider: str, model: str, options: Mapping[str, Any]
    ) -> None:
        ConfigurationValidator.validate_provider(provider, self.environment)
        ConfigurationValidator.validate_model(provider, model)
        ConfigurationValidator.validate_options(provider, options)

    @staticmethod
    def _validate_capabilities(
        provider: ModelProvider, json_mode: bool, options: Mapping[str, Any]
    ) -> None:
        json_supported = provider.supports_json_mode()
        tools_supported = provider.supports_tools()

        if json_mode and not json_supported:
            raise ConfigurationError(
                f"Provider {provider.provider_type} does not support JSON mode",
                provider.provider_type,
            )
        if options.get("tools") and not tools_supported:
            raise ConfigurationError(
                f"Provider {provider.provider_type} does not support tools",
                provider.provider_type,
            )


async def _close_provider(provider: ModelProvider) -> None:
    aclose = getattr(provider, "aclose", None)
    if not callable(aclose):
        return
    try:
        await aclose()
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        # Cleanup should never mask the primary failure.
        logger.warning("Provider cleanup failed: %s", exc)
