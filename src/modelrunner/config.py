"""Configuration: static provider schemas plus mutable runtime tuning.

Two pieces live here:

- ``ConfigurationValidator``: provider-keyed, registration-extensible metadata
  (credential keys, capability flags, model-name rules) and the pre-execution
  checks built on it.
- ``RuntimeConfigManager``: the single process-wide settings cell (timeout,
  retry tuning, caching and logging toggles), read as a copy and changed only
  through a deep merge.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
from dataclasses import dataclass, field
import logging
import re
import threading
from typing import Any, Literal, TypedDict

from modelrunner.errors import ConfigurationError

LogLevel = Literal["debug", "info", "warn", "warning", "error"]


# =============================================================================
# Provider schemas
# =============================================================================


@dataclass(frozen=True)
class SupportedFeatures:
    """Capability flags a provider declares."""

    json_mode: bool
    tools: bool
    streaming: bool


@dataclass(frozen=True)
class ModelValidation:
    """Optional model-name rules, checked in field order."""

    min_length: int | None = None
    max_length: int | None = None
    #: Regex searched against the model name (a plain string is compiled).
    pattern: re.Pattern[str] | str | None = None


@dataclass(frozen=True)
class ProviderConfigSchema:
    """Static metadata for one provider."""

    required_env_vars: tuple[str, ...]
    supported_features: SupportedFeatures
    optional_env_vars: tuple[str, ...] = ()
    default_options: Mapping[str, Any] = field(default_factory=dict)
    model_validation: ModelValidation | None = None


_BUILTIN_SCHEMAS: dict[str, ProviderConfigSchema] = {
    "cloudflare": ProviderConfigSchema(
        required_env_vars=("AI",),
        supported_features=SupportedFeatures(
            json_mode=True, tools=True, streaming=False
        ),
    ),
    "groq": ProviderConfigSchema(
        required_env_vars=("GROQ_API_KEY",),
        default_options={"temperature": 0.7, "max_tokens": 1024},
        supported_features=SupportedFeatures(json_mode=True, tools=True, streaming=True),
    ),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigurationValidator:
    """Registry of provider schemas and the validation built on it."""

    _provider_configs: dict[str, ProviderConfigSchema] = dict(_BUILTIN_SCHEMAS)
    _lock = threading.Lock()

    @classmethod
    def validate_provider(cls, provider: str, environment: Mapping[str, Any]) -> None:
        """Check the provider is known and every required credential is set.

        Raises:
            ConfigurationError: Unknown provider, or one or more required keys
                absent (or empty) in *environment*, listed in declared order.
        """
        schema = cls._provider_configs.get(provider)
        if schema is None:
            raise ConfigurationError(
                f"Unknown provider: {provider}",
                provider,
                hint=f"Supported providers: {', '.join(cls.registered_providers())}",
            )

        missing = [key for key in schema.required_env_vars if not environment.get(key)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables for {provider}: "
                f"{', '.join(missing)}",
                provider,
                hint=f"Pass {', '.join(missing)} in the runner environment.",
            )

    @classmethod
    def validate_model(cls, provider: str, model: str) -> None:
        schema = cls._provider_configs.get(provider)
        if schema is None or schema.model_validation is None:
            return

        rules = schema.model_validation
        if rules.min_length and len(model) < rules.min_length:
            raise ConfigurationError(
                f"Model name must be at least {rules.min_length} characters long",
                provider,
            )
        if rules.max_length and len(model) > rules.max_length:
            raise ConfigurationError(
                f"Model name must not exceed {rules.max_length} characters",
                provider,
            )
        if rules.pattern is not None:
            pattern = (
                re.compile(rules.pattern)
                if isinstance(rules.pattern, str)
                else rules.pattern
            )
            if not pattern.search(model):
                raise ConfigurationError(
                    f"Model name does not match required pattern: {pattern.pattern}",
                    provider,
                )

    @classmethod
    def validate_options(cls, provider: str, options: Mapping[str, Any]) -> None:
        """Sanity-check well-known numeric options; other keys pass through."""
        if provider not in cls._provider_configs:
            return

        if "temperature" in options:
            temp = options["temperature"]
            if not _is_number(temp) or temp < 0 or temp > 2:
                raise ConfigurationError(
                    "Temperature must be a number between 0 and 2", provider
                )

        if "max_tokens" in options:
            tokens = options["max_tokens"]
            if not _is_number(tokens) or tokens <= 0:
                raise ConfigurationError(
                    "Max tokens must be a positive number", provider
                )

    @classmethod
    def get_provider_config(cls, provider: str) -> ProviderConfigSchema | None:
        return cls._provider_configs.get(provider)

    @classmethod
    def register_provider_config(
        cls, provider: str, schema: ProviderConfigSchema
    ) -> None:
        """Insert or overwrite the schema for *provider*."""
        with cls._lock:
            updated = dict(cls._provider_configs)
            updated[provider] = schema
            cls._provider_configs = updated

    @classmethod
    def registered_providers(cls) -> tuple[str, ...]:
        return tuple(cls._provider_configs)


# =============================================================================
# Runtime configuration
# =============================================================================


class RetrySettings(TypedDict, total=False):
    max_attempts: int
    base_delay_s: float
    max_delay_s: float


class CachingSettings(TypedDict, total=False):
    enabled: bool
    ttl_s: float


class LoggingSettings(TypedDict, total=False):
    enabled: bool
    level: LogLevel


class RuntimeConfig(TypedDict, total=False):
    """Process-wide tuning. Caching is declared for collaborators only."""

    timeout_s: float
    retries: RetrySettings
    caching: CachingSettings
    logging: LoggingSettings


DEFAULT_RUNTIME_CONFIG: RuntimeConfig = {
    "timeout_s": 30.0,
    "retries": {"max_attempts": 3, "base_delay_s": 1.0, "max_delay_s": 10.0},
    "caching": {"enabled": False, "ttl_s": 300.0},
    "logging": {"enabled": True, "level": "info"},
}

_LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Return *target* updated with *source*, recursing into nested mappings.

    When both sides hold a mapping the merge recurses; anything else
    (including lists) replaces the old value outright. Neither argument is
    mutated and no value from *source* is shared with the result.
    """
    result = dict(target)
    for key, value in source.items():
        existing = result.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            result[key] = deep_merge(existing, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


class RuntimeConfigManager:
    """Holder of the shared runtime settings.

    Readers get a deep copy; writers merge under a lock and publish a fresh
    dict, so a concurrent reader sees either the old or the new state.
    """

    _config: dict[str, Any] = copy.deepcopy(dict(DEFAULT_RUNTIME_CONFIG))
    _lock = threading.Lock()

    @classmethod
    def get_config(cls) -> RuntimeConfig:
        return copy.deepcopy(cls._config)  # type: ignore[return-value]

    @classmethod
    def update_config(cls, updates: Mapping[str, Any]) -> None:
        """Deep-merge *updates* into the shared settings.

        The ``modelrunner`` logger is touched only when *updates* carries a
        ``logging`` block, and then only for the keys it names, so a level
        set by the host application survives unrelated updates.
        """
        with cls._lock:
            cls._config = deep_merge(cls._config, updates)
        _apply_logging(updates.get("logging"))

    @classmethod
    def reset(cls) -> None:
        """Restore defaults and hand the package logger back to the host.

        Never called implicitly.
        """
        with cls._lock:
            cls._config = copy.deepcopy(dict(DEFAULT_RUNTIME_CONFIG))
        package_logger = logging.getLogger("modelrunner")
        package_logger.disabled = False
        package_logger.setLevel(logging.NOTSET)


def _apply_logging(settings: Any) -> None:
    """Apply the given logging keys to the package logger."""
    if not isinstance(settings, Mapping):
        return
    package_logger = logging.getLogger("modelrunner")
    if "enabled" in settings:
        package_logger.disabled = not settings["enabled"]
    if "level" in settings:
        level = _LOG_LEVELS.get(str(settings["level"]).lower())
        if level is not None:
            package_logger.setLevel(level)
