"""Async retry helpers.

Two layers coexist:

- ``run_with_retry``: the small transport-level helper every provider wraps
  around its network or binding call (fixed attempts, linear delay).
- ``execute_with_retry``: the policy-driven executor the runner wraps around a
  whole provider call (exponential backoff with jitter, delay ceiling, explicit
  classification of retryable failures).

Attempts are strictly sequential; cancellation is never retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
import logging
import random
from typing import TYPE_CHECKING, Any, TypeVar

from modelrunner.errors import is_network_error

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

T = TypeVar("T")

logger = logging.getLogger(__name__)


# =============================================================================
# Transport-level helper
# =============================================================================


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay_s: float = 1.0,
    *,
    should_retry: Callable[[BaseException], bool] | None = None,
    info: Callable[[str], None] | None = None,
) -> T | None:
    """Call *fn* up to *max_retries* times, sleeping ``delay_s * (i + 1)`` between.

    Every exception is retried unless *should_retry* says otherwise. The last
    failure propagates unchanged. Returns None only when ``max_retries < 1``.
    """
    for i in range(max_retries):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            retryable = should_retry(exc) if should_retry is not None else True
            if not retryable or i >= max_retries - 1:
                raise
            msg = f"Transport call failed ({exc}). Retrying {i + 1}/{max_retries}..."
            logger.debug(msg)
            if info is not None:
                info(msg)
            await asyncio.sleep(delay_s * (i + 1))
    return None


# =============================================================================
# Policy-driven executor
# =============================================================================


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for ``execute_with_retry``."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 10.0
    backoff_factor: float = 2.0
    #: Case-insensitive substrings of the error message that mark it retryable.
    #: "1031" is a backend-specific code kept as a literal default.
    retryable_errors: tuple[str, ...] = (
        "1031",
        "500",
        "502",
        "503",
        "504",
        "timeout",
        "network",
    )
    retryable_status_codes: frozenset[int] = frozenset({500, 502, 503, 504, 429})

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ValueError("RetryConfig.max_retries must be >= 0")
        if self.base_delay_s < 0:
            raise ValueError("RetryConfig.base_delay_s must be >= 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryConfig.max_delay_s must be >= 0")
        if self.backoff_factor <= 0:
            raise ValueError("RetryConfig.backoff_factor must be > 0")
        object.__setattr__(self, "retryable_errors", tuple(self.retryable_errors))
        object.__setattr__(
            self, "retryable_status_codes", frozenset(self.retryable_status_codes)
        )

    @classmethod
    def from_mapping(cls, overrides: Mapping[str, Any]) -> RetryConfig:
        """Overlay a partial mapping on the defaults; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return replace(cls(), **{k: v for k, v in overrides.items() if k in known})

    @classmethod
    def from_runtime(cls, retries: Mapping[str, Any] | None) -> RetryConfig:
        """Translate the runtime ``retries`` settings into a policy.

        ``max_attempts`` counts every attempt, the initial one included.
        """
        if not retries:
            return cls()
        overrides: dict[str, Any] = {}
        if "max_attempts" in retries:
            overrides["max_retries"] = max(0, int(retries["max_attempts"]) - 1)
        if "base_delay_s" in retries:
            overrides["base_delay_s"] = float(retries["base_delay_s"])
        if "max_delay_s" in retries:
            overrides["max_delay_s"] = float(retries["max_delay_s"])
        return replace(cls(), **overrides)


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield exc and its causes/contexts, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def should_retry(exc: BaseException, config: RetryConfig | None = None) -> bool:
    """Return True when *exc* is worth another attempt under *config*.

    Retryable when the message contains a configured marker, when the error
    carries a numeric status in the configured set, or when a network
    transport failure sits anywhere in its cause chain.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    cfg = config or RetryConfig()

    text = str(exc).lower()
    if any(marker.lower() in text for marker in cfg.retryable_errors):
        return True

    status = _status_of(exc)
    if status is not None:
        return status in cfg.retryable_status_codes

    return any(
        is_network_error(e) or isinstance(e, (TimeoutError, asyncio.TimeoutError))
        for e in _walk_exception_chain(exc)
    )


def compute_delay(attempt: int, config: RetryConfig) -> float:
    """Backoff in seconds before the retry following *attempt* (0-based)."""
    exponential = config.base_delay_s * (config.backoff_factor**attempt)
    jitter = random.random() * 0.1 * exponential  # noqa: S311
    return min(exponential + jitter, config.max_delay_s)


def _resolve_config(config: RetryConfig | Mapping[str, Any] | None) -> RetryConfig:
    if config is None:
        return RetryConfig()
    if isinstance(config, RetryConfig):
        return config
    return RetryConfig.from_mapping(config)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | Mapping[str, Any] | None = None,
    context: str | None = None,
) -> T:
    """Run *operation* with up to ``max_retries`` retries.

    Args:
        operation: Zero-argument coroutine factory; must be safe to repeat.
        config: A ``RetryConfig`` or a partial mapping of its fields.
        context: Label for the warning logged before each retry. No log
            is emitted when omitted.

    Returns:
        The first successful result.

    Raises:
        The last failure, unchanged, once retries are exhausted or a
        non-retryable failure occurs.
    """
    cfg = _resolve_config(config)
    total = cfg.max_retries + 1
    last_exc: BaseException | None = None

    for attempt in range(total):
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_exc = exc
            if attempt >= cfg.max_retries or not should_retry(exc, cfg):
                raise

            delay = compute_delay(attempt, cfg)
            if context:
                logger.warning(
                    "%s - Attempt %d/%d failed. Retrying in %.0fms...",
                    context,
                    attempt + 1,
                    total,
                    delay * 1000,
                )
            await asyncio.sleep(delay)

    # Unreachable: the loop always returns or raises.
    if last_exc is None:  # pragma: no cover
        raise RuntimeError("execute_with_retry exhausted without an exception")
    raise last_exc  # pragma: no cover
