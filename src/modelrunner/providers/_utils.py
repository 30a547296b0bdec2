"""Shared utilities for provider implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from modelrunner.providers.models import Usage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from modelrunner.providers.models import ToolCall


def build_usage(
    prompt_tokens: int, completion_tokens: int, total_tokens: int
) -> Usage:
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


def filter_duplicate_tool_calls(tool_calls: Iterable[ToolCall]) -> list[ToolCall]:
    """Keep the first call per function name, preserving order.

    Some backends echo the same function call several times in one response.
    """
    seen: set[str] = set()
    kept: list[ToolCall] = []
    for call in tool_calls:
        name = call.function.name
        if name in seen:
            continue
        seen.add(name)
        kept.append(call)
    return kept
