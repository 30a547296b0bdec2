"""Result assembly: uniform records from heterogeneous provider output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from modelrunner.json_recovery import JsonParser
from modelrunner.providers.models import ToolCall, Usage

if TYPE_CHECKING:
    from collections.abc import Sequence

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ModelResult:
    """What ``ModelRunner.run`` returns.

    ``is_json`` is never True when the model requested tool calls.
    """

    content: str
    is_json: bool
    tool_calls: list[ToolCall] = field(default_factory=list)
    raw: Any = None
    usage: Usage = field(default_factory=Usage)

    def json(self, model: type[M] | None = None) -> Any:
        """Recover structured data from ``content`` on demand.

        Args:
            model: Optional pydantic model to validate the recovered value
                against. Validation failure yields ``None``.

        Returns:
            The decoded value (or model instance), or ``None``.
        """
        value = JsonParser.parse(self.content, self.is_json)
        if model is None or value is None:
            return value
        try:
            return model.model_validate(value)
        except ValidationError:
            return None


class ResponseBuilder:
    """Chained setters that finish in ``build()``."""

    def __init__(self) -> None:
        self._content = ""
        self._tool_calls: list[ToolCall] = []
        self._raw: Any = None
        self._usage = Usage()
        self._json_mode = False

    @classmethod
    def create(cls) -> ResponseBuilder:
        return cls()

    def set_content(self, content: str) -> ResponseBuilder:
        self._content = content
        return self

    def set_tool_calls(self, tool_calls: Sequence[ToolCall]) -> ResponseBuilder:
        self._tool_calls = list(tool_calls)
        return self

    def set_raw_response(self, raw: Any) -> ResponseBuilder:
        self._raw = raw
        return self

    def set_usage(self, usage: Usage) -> ResponseBuilder:
        self._usage = usage
        return self

    def set_json_mode(self, json_mode: bool) -> ResponseBuilder:
        self._json_mode = json_mode
        return self

    def build(self) -> ModelResult:
        is_json = not self._tool_calls and (
            self._json_mode or self._content.strip().startswith("{")
        )
        return ModelResult(
            content=self._content,
            is_json=is_json,
            tool_calls=list(self._tool_calls),
            raw=self._raw,
            usage=self._usage,
        )
