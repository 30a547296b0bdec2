"""Provider schemas, option validation, and the runtime settings cell."""

from __future__ import annotations

import logging
import re

import pytest

from modelrunner.config import (
    DEFAULT_RUNTIME_CONFIG,
    ConfigurationValidator,
    ModelValidation,
    ProviderConfigSchema,
    RuntimeConfigManager,
    SupportedFeatures,
    deep_merge,
)
from modelrunner.errors import ConfigurationError
from modelrunner.providers.factory import ProviderFactory

pytestmark = pytest.mark.unit


def _schema(**kwargs) -> ProviderConfigSchema:
    defaults = {
        "required_env_vars": (),
        "supported_features": SupportedFeatures(
            json_mode=False, tools=False, streaming=False
        ),
    }
    defaults.update(kwargs)
    return ProviderConfigSchema(**defaults)


# =============================================================================
# Provider validation
# =============================================================================


def test_unknown_provider_is_named() -> None:
    with pytest.raises(ConfigurationError, match="Unknown provider: nope") as exc_info:
        ConfigurationValidator.validate_provider("nope", {})
    assert exc_info.value.provider == "nope"
    assert "cloudflare" in (exc_info.value.hint or "")


def test_missing_keys_are_listed_in_declared_order() -> None:
    ConfigurationValidator.register_provider_config(
        "multi", _schema(required_env_vars=("B_KEY", "A_KEY", "C_KEY"))
    )
    with pytest.raises(ConfigurationError) as exc_info:
        ConfigurationValidator.validate_provider("multi", {"A_KEY": "set"})
    assert str(exc_info.value) == (
        "Missing required environment variables for multi: B_KEY, C_KEY"
    )


def test_empty_credential_counts_as_missing() -> None:
    with pytest.raises(ConfigurationError, match="for groq: GROQ_API_KEY"):
        ConfigurationValidator.validate_provider("groq", {"GROQ_API_KEY": ""})


def test_present_credentials_pass() -> None:
    ConfigurationValidator.validate_provider("groq", {"GROQ_API_KEY": "gsk_test"})
    ConfigurationValidator.validate_provider("cloudflare", {"AI": object()})


def test_builtin_schemas() -> None:
    groq = ConfigurationValidator.get_provider_config("groq")
    cloudflare = ConfigurationValidator.get_provider_config("cloudflare")

    assert groq is not None and cloudflare is not None
    assert groq.required_env_vars == ("GROQ_API_KEY",)
    assert groq.default_options == {"temperature": 0.7, "max_tokens": 1024}
    assert groq.supported_features == SupportedFeatures(True, True, True)
    assert cloudflare.required_env_vars == ("AI",)
    assert cloudflare.supported_features == SupportedFeatures(True, True, False)
    assert ConfigurationValidator.get_provider_config("nope") is None


# =============================================================================
# Model-name validation
# =============================================================================


@pytest.fixture
def strict_models() -> None:
    ConfigurationValidator.register_provider_config(
        "strict",
        _schema(
            model_validation=ModelValidation(
                min_length=3, max_length=12, pattern=r"^[a-z0-9-]+$"
            )
        ),
    )


@pytest.mark.usefixtures("strict_models")
def test_model_name_rules_pass() -> None:
    ConfigurationValidator.validate_model("strict", "llama-3")


@pytest.mark.usefixtures("strict_models")
@pytest.mark.parametrize(
    ("model", "message"),
    [
        ("ab", "Model name must be at least 3 characters long"),
        ("a" * 13, "Model name must not exceed 12 characters"),
        ("Llama_3", "Model name does not match required pattern: ^[a-z0-9-]+$"),
    ],
)
def test_model_name_rules_fail(model: str, message: str) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        ConfigurationValidator.validate_model("strict", model)
    assert str(exc_info.value) == message


def test_compiled_pattern_is_accepted() -> None:
    ConfigurationValidator.register_provider_config(
        "cf-only",
        _schema(model_validation=ModelValidation(pattern=re.compile(r"^@cf/"))),
    )
    ConfigurationValidator.validate_model("cf-only", "@cf/meta/llama")
    with pytest.raises(ConfigurationError, match="does not match"):
        ConfigurationValidator.validate_model("cf-only", "llama")


def test_model_validation_is_noop_without_rules() -> None:
    ConfigurationValidator.validate_model("groq", "")
    ConfigurationValidator.validate_model("unknown", "")


# =============================================================================
# Option validation
# =============================================================================


@pytest.mark.parametrize("temperature", [0, 0.7, 2, 2.0])
def test_temperature_in_range(temperature: float) -> None:
    ConfigurationValidator.validate_options("groq", {"temperature": temperature})


@pytest.mark.parametrize("temperature", [-0.1, 2.5, "0.5", True, None])
def test_temperature_out_of_range(temperature: object) -> None:
    with pytest.raises(
        ConfigurationError, match="Temperature must be a number between 0 and 2"
    ):
        ConfigurationValidator.validate_options("groq", {"temperature": temperature})


@pytest.mark.parametrize("max_tokens", [0, -5, "100", False])
def test_max_tokens_must_be_positive(max_tokens: object) -> None:
    with pytest.raises(ConfigurationError, match="Max tokens must be a positive number"):
        ConfigurationValidator.validate_options("cloudflare", {"max_tokens": max_tokens})


def test_other_options_pass_through() -> None:
    ConfigurationValidator.validate_options(
        "groq", {"max_tokens": 1, "top_p": "anything", "tools": []}
    )


def test_unknown_provider_skips_option_checks() -> None:
    ConfigurationValidator.validate_options("unknown", {"temperature": 99})


# =============================================================================
# Registry parity
# =============================================================================


def test_config_registry_and_factory_agree() -> None:
    assert set(ConfigurationValidator.registered_providers()) == set(
        ProviderFactory.get_supported_providers()
    )


def test_register_provider_config_overwrites() -> None:
    replacement = _schema(required_env_vars=("NEW_KEY",))
    ConfigurationValidator.register_provider_config("groq", replacement)
    assert ConfigurationValidator.get_provider_config("groq") is replacement


# =============================================================================
# Runtime configuration
# =============================================================================


def test_defaults() -> None:
    config = RuntimeConfigManager.get_config()
    assert config == DEFAULT_RUNTIME_CONFIG
    assert config["retries"]["max_attempts"] == 3
    assert config["timeout_s"] == 30.0


def test_get_config_returns_a_copy() -> None:
    config = RuntimeConfigManager.get_config()
    config["retries"]["max_attempts"] = 99
    assert RuntimeConfigManager.get_config()["retries"]["max_attempts"] == 3


def test_disjoint_nested_updates_are_merged() -> None:
    RuntimeConfigManager.update_config({"retries": {"max_attempts": 5}})
    RuntimeConfigManager.update_config({"logging": {"level": "debug"}})

    config = RuntimeConfigManager.get_config()
    assert config["retries"] == {
        "max_attempts": 5,
        "base_delay_s": 1.0,
        "max_delay_s": 10.0,
    }
    assert config["logging"] == {"enabled": True, "level": "debug"}
    assert config["caching"] == DEFAULT_RUNTIME_CONFIG["caching"]


def test_update_does_not_share_caller_input() -> None:
    updates = {"retries": {"max_attempts": 7}, "extra": {"tags": ["a"]}}
    RuntimeConfigManager.update_config(updates)
    updates["retries"]["max_attempts"] = 1
    updates["extra"]["tags"].append("b")

    config = RuntimeConfigManager.get_config()
    assert config["retries"]["max_attempts"] == 7
    assert config["extra"] == {"tags": ["a"]}


def test_reset_restores_defaults() -> None:
    RuntimeConfigManager.update_config({"timeout_s": 1.0})
    RuntimeConfigManager.reset()
    assert RuntimeConfigManager.get_config() == DEFAULT_RUNTIME_CONFIG


def test_logging_settings_drive_package_logger() -> None:
    package_logger = logging.getLogger("modelrunner")

    RuntimeConfigManager.update_config({"logging": {"level": "debug"}})
    assert package_logger.level == logging.DEBUG
    assert package_logger.disabled is False

    RuntimeConfigManager.update_config({"logging": {"level": "warn"}})
    assert package_logger.level == logging.WARNING

    RuntimeConfigManager.update_config({"logging": {"enabled": False}})
    assert package_logger.disabled is True


def test_unrelated_update_leaves_host_logger_level_alone() -> None:
    package_logger = logging.getLogger("modelrunner")
    package_logger.setLevel(logging.DEBUG)

    RuntimeConfigManager.update_config({"retries": {"max_attempts": 5}})
    assert package_logger.level == logging.DEBUG

    RuntimeConfigManager.update_config({"logging": {"enabled": True}})
    assert package_logger.level == logging.DEBUG
    assert package_logger.disabled is False


def test_reset_hands_package_logger_back() -> None:
    package_logger = logging.getLogger("modelrunner")
    RuntimeConfigManager.update_config({"logging": {"enabled": False, "level": "error"}})

    RuntimeConfigManager.reset()

    assert package_logger.disabled is False
    assert package_logger.level == logging.NOTSET


# =============================================================================
# deep_merge
# =============================================================================


def test_deep_merge_recurses_into_mappings() -> None:
    target = {"a": {"b": 1, "c": {"d": 2}}, "keep": True}
    merged = deep_merge(target, {"a": {"c": {"e": 3}}})

    assert merged == {"a": {"b": 1, "c": {"d": 2, "e": 3}}, "keep": True}
    assert target == {"a": {"b": 1, "c": {"d": 2}}, "keep": True}


def test_deep_merge_replaces_lists_and_scalars() -> None:
    merged = deep_merge({"xs": [1, 2], "n": {"k": 1}}, {"xs": [3], "n": 5})
    assert merged == {"xs": [3], "n": 5}


def test_deep_merge_mapping_over_scalar_replaces() -> None:
    assert deep_merge({"n": 5}, {"n": {"k": 1}}) == {"n": {"k": 1}}
