"""modelrunner: one request/response contract over many LLM providers.

Public API:
    - ModelRunner: validate, dispatch, retry and normalize a model call
    - Message / ModelSelector: call inputs
    - ModelResult: normalized output with lenient ``json()`` recovery
    - ConfigurationError / ProviderError: the two failure kinds
"""

from __future__ import annotations

import logging

from modelrunner.config import (
    ConfigurationValidator,
    ModelValidation,
    ProviderConfigSchema,
    RuntimeConfigManager,
    SupportedFeatures,
)
from modelrunner.errors import ConfigurationError, ModelRunnerError, ProviderError
from modelrunner.json_recovery import JsonParser
from modelrunner.providers import (
    CloudflareProvider,
    FunctionCall,
    GroqProvider,
    Message,
    ModelProvider,
    ModelSelector,
    ProviderFactory,
    ProviderRequest,
    ProviderResponse,
    ToolCall,
    Usage,
    cloudflare_model,
    groq_model,
)
from modelrunner.result import ModelResult, ResponseBuilder
from modelrunner.retry import RetryConfig, execute_with_retry, run_with_retry
from modelrunner.runner import ModelRunner

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("modelrunner")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("modelrunner").addHandler(logging.NullHandler())

__all__ = [
    "CloudflareProvider",
    "ConfigurationError",
    "ConfigurationValidator",
    "FunctionCall",
    "GroqProvider",
    "JsonParser",
    "Message",
    "ModelProvider",
    "ModelResult",
    "ModelRunner",
    "ModelRunnerError",
    "ModelSelector",
    "ModelValidation",
    "ProviderConfigSchema",
    "ProviderError",
    "ProviderFactory",
    "ProviderRequest",
    "ProviderResponse",
    "ResponseBuilder",
    "RetryConfig",
    "RuntimeConfigManager",
    "SupportedFeatures",
    "ToolCall",
    "Usage",
    "cloudflare_model",
    "execute_with_retry",
    "groq_model",
    "run_with_retry",
]
