"""Best-effort recovery of structured JSON from free-form model output.

Models asked for JSON frequently wrap it in markdown fences, surround it with
prose, or emit near-JSON (trailing commas, single quotes, comments). The parser
tries the cheapest interpretation first and falls back through increasingly
lenient strategies, returning ``None`` instead of raising when nothing works.

Known limitation: the brace strategy is greedy. It spans from the first ``{``
to the last ``}`` in the text, so two separate objects in one answer are
merged into a single (usually invalid) candidate. Downstream callers rely on
this behavior; keep it.
"""

from __future__ import annotations

import json
import re
from typing import Any

_JSON_FENCE_RE = re.compile(r"```json\s*(\{[\s\S]*?\})\s*```")
_GENERIC_FENCE_RE = re.compile(r"```\s*(\{[\s\S]*?\})\s*```")
_BRACES_RE = re.compile(r"\{[\s\S]*\}")

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_QUOTED_VALUE_RE = re.compile(r'"\s*:\s*"([^"]*?)"')
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant: {name}")


def _try_loads(candidate: str | None) -> tuple[bool, Any]:
    if not candidate:
        return False, None
    try:
        return True, json.loads(candidate, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False, None


class JsonParser:
    """Lenient JSON parsing with ordered fallback strategies."""

    @staticmethod
    def parse(text: Any, expect_json: bool = False) -> Any:
        """Parse *text* as JSON, recovering from common model formatting.

        Args:
            text: Raw model output. Non-string or empty input yields ``None``.
            expect_json: Fast-fail hint. When True and the text shows no sign
                of JSON (no leading ``{``/``[`` and no ``"`` anywhere), return
                ``None`` without trying any recovery.

        Returns:
            The decoded value, or ``None`` when every strategy fails.
        """
        if not isinstance(text, str) or not text:
            return None

        if expect_json and not JsonParser.looks_like_json(text):
            return None

        ok, value = _try_loads(text)
        if ok:
            return value

        for extract in (
            JsonParser.extract_from_markdown,
            JsonParser.extract_from_code_block,
            JsonParser.extract_by_braces,
            JsonParser.attempt_json_fixes,
        ):
            ok, value = _try_loads(extract(text))
            if ok:
                return value

        return None

    @staticmethod
    def looks_like_json(text: str) -> bool:
        trimmed = text.strip()
        return trimmed.startswith(("{", "[")) or '"' in trimmed

    @staticmethod
    def extract_from_markdown(text: str) -> str | None:
        """Return the first ```json fenced object, if any."""
        match = _JSON_FENCE_RE.search(text)
        return match.group(1) if match else None

    @staticmethod
    def extract_from_code_block(text: str) -> str | None:
        """Return the first untagged fenced block that holds an object."""
        match = _GENERIC_FENCE_RE.search(text)
        return match.group(1) if match else None

    @staticmethod
    def extract_by_braces(text: str) -> str | None:
        match = _BRACES_RE.search(text)
        return match.group(0) if match else None

    @staticmethod
    def attempt_json_fixes(text: str) -> str | None:
        """Apply naive textual repairs; None if the result still is not JSON-ish.

        The quote re-escaping step rewrites ``"key": "value"`` pairs and drops
        the closing quote of the key, so objects with string values rarely
        survive this strategy. Only fixes that leave string values alone
        (trailing commas, comments after the object) are effective.
        """
        fixed = text.strip()
        fixed = _TRAILING_COMMA_RE.sub(r"\1", fixed)
        fixed = fixed.replace("'", '"')
        fixed = _QUOTED_VALUE_RE.sub(
            lambda m: ': "' + m.group(1).replace('"', '\\"') + '"', fixed
        )
        fixed = _LINE_COMMENT_RE.sub("", fixed)
        fixed = _BLOCK_COMMENT_RE.sub("", fixed)

        if JsonParser.looks_like_json(fixed):
            return fixed
        return None

    @staticmethod
    def stringify(value: Any, pretty: bool = False) -> str:
        """Encode *value* as JSON, falling back to ``str(value)``.

        The fallback (circular references, unserializable objects, nesting
        deeper than the encoder allows) is lossy: callers get a string back
        instead of an exception. Values too deep even for ``str`` are reduced
        to their type name.
        """
        try:
            if pretty:
                return json.dumps(value, indent=2, ensure_ascii=False)
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError, RecursionError):
            try:
                return str(value)
            except RecursionError:
                return f"<{type(value).__name__}>"
