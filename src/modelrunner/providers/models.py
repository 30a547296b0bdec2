"""Domain models for the provider transport layer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import json
from typing import Any, Literal

from modelrunner.errors import ConfigurationError

Role = Literal["system", "user", "assistant"]
_ROLES: frozenset[str] = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class Message:
    """A single conversation turn. Order within a call is significant."""

    role: Role
    content: str
    name: str | None = None

    def __post_init__(self) -> None:
        """Reject roles outside the closed set early."""
        if self.role not in _ROLES:
            raise ConfigurationError(
                f"Invalid message role: {self.role!r}",
                hint="Use one of 'system', 'user', 'assistant'.",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        return cls(
            role=data.get("role"),  # type: ignore[arg-type]
            content=str(data.get("content", "")),
            name=data.get("name"),
        )

    def to_dict(self) -> dict[str, str]:
        out = {"role": self.role, "content": self.content}
        if self.name is not None:
            out["name"] = self.name
        return out


@dataclass(frozen=True)
class ModelSelector:
    """Which backend (provider) and which model on it to invoke."""

    provider: str
    model: str


@dataclass(frozen=True)
class FunctionCall:
    """Function name plus its arguments, always JSON-encoded as a string."""

    name: str
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""

    id: str
    function: FunctionCall
    type: Literal["function"] = "function"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolCall:
        """Build from the OpenAI-style ``{"id", "type", "function"}`` mapping."""
        fn = data.get("function") or {}
        args = fn.get("arguments", "")
        if not isinstance(args, str):
            args = json.dumps(args)
        return cls(
            id=str(data.get("id", "")),
            function=FunctionCall(name=str(fn.get("name", "")), arguments=args),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }


@dataclass(frozen=True)
class Usage:
    """Token accounting; zero-filled when the backend does not report it."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ProviderRequest:
    """A normalized call description handed to a provider."""

    messages: tuple[Message, ...]
    json_mode: bool
    options: Mapping[str, Any]
    model: str


@dataclass
class ProviderResponse:
    """A standardized response from a provider execute call."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw: Any = None
    usage: Usage = field(default_factory=Usage)
