"""Exception hierarchy for modelrunner."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx


class ModelRunnerError(Exception):
    """Base exception for all modelrunner errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint

    @property
    def message(self) -> str:
        return self.args[0] if self.args else ""


class ConfigurationError(ModelRunnerError):
    """Local, pre-execution failure: credentials, provider, model or options.

    Never wraps a transport-layer cause.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        *,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider


class ProviderError(ModelRunnerError):
    """Execution-time failure raised by a provider.

    ``cause`` keeps the raw underlying failure (an exception, a response body,
    or whatever the transport produced) for caller inspection.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        *,
        status_code: int | None = None,
        cause: Any = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider
        self.status_code = status_code
        self.cause = cause

    @property
    def status(self) -> int | None:
        """Alias of ``status_code`` for status-based retry classification."""
        return self.status_code


def describe_error(exc: BaseException | Any) -> str:
    """Return the message of *exc*, or ``"Unknown error"`` when it has none."""
    if isinstance(exc, BaseException):
        text = str(exc)
        return text if text else "Unknown error"
    return "Unknown error"


def wrap_provider_error(
    exc: BaseException,
    provider: str,
    context: str | None = None,
) -> ModelRunnerError:
    """Tag *exc* with the provider and context for display.

    The returned error keeps the class and structured fields of library
    errors, so ``except ConfigurationError`` and ``err.status_code`` keep
    working after the wrap. Callers should ``raise wrapped from exc``.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    context_note = f" ({context})" if context else ""
    text = str(exc) if str(exc) else "Unknown error occurred"
    message = f"[{provider.upper()}]{context_note} {text}"

    if isinstance(exc, ProviderError):
        return ProviderError(
            message,
            exc.provider or provider,
            status_code=exc.status_code,
            cause=exc.cause,
            hint=exc.hint,
        )
    if isinstance(exc, ConfigurationError):
        return ConfigurationError(message, exc.provider or provider, hint=exc.hint)
    if isinstance(exc, ModelRunnerError):
        return ModelRunnerError(message, hint=exc.hint)
    return ModelRunnerError(message)


def is_network_error(exc: BaseException) -> bool:
    """Return True for transport-level failures (connection refused, DNS, ...)."""
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return True
    if isinstance(exc, TypeError):
        text = str(exc)
        return "fetch" in text or "network" in text or "ECONNREFUSED" in text
    return False


def is_timeout_error(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return True
    return "timeout" in str(exc).lower()


def is_rate_limit_error(exc: BaseException) -> bool:
    if "rate limit" in str(exc).lower():
        return True
    for attr in ("status", "status_code"):
        if getattr(exc, attr, None) == 429:
            return True
    return False
