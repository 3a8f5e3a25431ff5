"""Lenient JSON parsing for text returned by the generation model."""

import json
import re
from typing import Any

from coursegen.utils.errors import ContentParseError

_FENCE_RE = re.compile(r"^\s*```(?:json|JSON)?\s*|\s*```\s*$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_MISSING_COMMA_RE = re.compile(r'(["}\]]|\btrue|\bfalse|\bnull|\d)(\s*\n\s*)(["{\[])')


def parse_lenient_json(raw: str) -> Any:
    """
    Parse model output that is expected to hold a JSON document.

    Tries strict parsing first, then progressively repairs the text:
    markdown fences, surrounding prose, trailing commas, bare keys and
    missing commas between values on separate lines.

    Args:
        raw: Text returned by the model

    Returns:
        The decoded JSON value

    Raises:
        ContentParseError: If no repair pass yields valid JSON
    """
    last_error: json.JSONDecodeError | None = None
    candidates = [raw]

    stripped = _FENCE_RE.sub("", raw.strip())
    candidates.append(stripped)

    block = _extract_json_block(stripped)
    if block is not None:
        candidates.append(block)
        cleaned = _TRAILING_COMMA_RE.sub(r"\1", block)
        candidates.append(cleaned)
        quoted = _quote_bare_keys(cleaned)
        candidates.append(quoted)
        candidates.append(_MISSING_COMMA_RE.sub(r"\1,\2\3", quoted))

    for candidate in candidates:
        try:
            return json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            last_error = e

    raise ContentParseError(f"Failed to parse JSON content: {last_error}")


def _extract_json_block(raw: str) -> str | None:
    """Return the first balanced JSON object or array in the text."""
    start: int | None = None
    depth = 0
    in_string = False
    escape = False

    for index, char in enumerate(raw):
        if start is None:
            if char in "{[":
                start = index
                depth = 1
            continue

        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return raw[start : index + 1]

    return None


def _quote_bare_keys(raw: str) -> str:
    """Wrap unquoted object keys in double quotes, leaving strings untouched."""
    output: list[str] = []
    in_string = False
    escape = False
    expecting_key = False
    index = 0

    while index < len(raw):
        char = raw[index]

        if in_string:
            output.append(char)
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            index += 1
            continue

        if char == '"':
            in_string = True
            expecting_key = False
        elif char in "{,":
            expecting_key = True
        elif char in "}:":
            expecting_key = False
        elif expecting_key and (char.isalpha() or char == "_"):
            end = index
            while end < len(raw) and (raw[end].isalnum() or raw[end] == "_"):
                end += 1
            output.append(f'"{raw[index:end]}"')
            expecting_key = False
            index = end
            continue

        output.append(char)
        index += 1

    return "".join(output)
