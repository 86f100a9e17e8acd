"""
JSON Utilities for LLM Response Parsing.

LLM replies embed one JSON payload in surrounding prose and are sometimes cut
off mid-token. Parsing is layered:

1. Extraction of the first balanced object/array (string and escape aware)
2. Strict json.loads()
3. Truncation repair: cut back to the last complete element and close the
   open brackets, optionally injecting fields chosen by the caller
4. json-repair library for everything else (quotes, trailing commas, ...)

Each layer raises or falls through; ValueError is raised when nothing works.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from json_repair import repair_json

_CLOSERS = {"{": "}", "[": "]"}

# Upper bound on cut points tried by the truncation repair
MAX_REPAIR_CUTS = 64

TruncationHook = Callable[[str], Optional[Dict[str, Any]]]


@dataclass
class JsonParseResult:
    """Parsed payload plus which layer produced it."""

    value: Any
    strategy: str          # "strict" | "truncation_repair" | "json_repair"
    truncated: bool = False

    @property
    def repaired(self) -> bool:
        return self.strategy != "strict"


def strip_markdown_blocks(text: str) -> str:
    """
    Remove markdown code block wrappers from text.

    Handles:
    - ```json ... ```
    - ``` ... ```
    - Leading/trailing whitespace
    """
    result = text.strip()

    if result.startswith("```json"):
        result = result[7:]
    elif result.startswith("```"):
        result = result[3:]

    if result.endswith("```"):
        result = result[:-3]

    return result.strip()


def extract_json_fragment(text: str, opener: str = "{") -> Tuple[str, bool]:
    """
    Locate the first balanced JSON object or array inside free text.

    Args:
        text: Raw LLM reply
        opener: "{" for an object, "[" for an array

    Returns:
        (fragment, complete) - complete is False when the text ends before the
        structure is closed; the fragment then runs to the end of the text.

    Raises:
        ValueError: If no opening bracket is present
    """
    if opener not in _CLOSERS:
        raise ValueError(f"Unsupported JSON opener: {opener!r}")

    start = text.find(opener)
    if start == -1:
        raise ValueError(f"No JSON {'object' if opener == '{' else 'array'} found in text: {text[:200]}")

    depth = 0
    in_string = False
    escape = False
    for index in range(start, len(text)):
        char = text[index]
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
                return text[start:index + 1], True

    return text[start:].rstrip(), False


def separator_positions(fragment: str) -> List[int]:
    """Indices of commas outside string literals, in order."""
    positions = []
    in_string = False
    escape = False
    for index, char in enumerate(fragment):
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
        elif char == ",":
            positions.append(index)
    return positions


def close_open_brackets(fragment: str) -> str:
    """
    Close an unterminated JSON fragment.

    Terminates an open string, drops a dangling separator and appends the
    closers for every bracket still open.
    """
    stack: List[str] = []
    in_string = False
    escape = False
    for char in fragment:
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
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "}]" and stack:
            stack.pop()

    result = fragment
    if in_string:
        if escape:
            result = result[:-1]
        result += '"'

    result = result.rstrip()
    if result.endswith(","):
        result = result[:-1].rstrip()
    if result.endswith(":"):
        result += " null"

    return result + "".join(reversed(stack))


def _inject_fields(closed: str, fields: Dict[str, Any]) -> str:
    """Insert top-level fields just before the final closing brace."""
    if not fields or not closed.endswith("}"):
        return closed
    body = closed[:-1].rstrip()
    extra = ", ".join(f"{json.dumps(key)}: {json.dumps(value)}" for key, value in fields.items())
    separator = "" if body.endswith("{") else ", "
    return f"{body}{separator}{extra}}}"


def repair_truncated_json(
    fragment: str,
    inject_fields: Optional[Dict[str, Any]] = None,
) -> Optional[Any]:
    """
    Best-effort repair of a fragment that was cut off before its closing bracket.

    Walks back through separators (last first), keeps everything up to the last
    complete element, closes the structure and returns the first candidate that
    parses. Falls back to closing the whole fragment. Returns None on failure.
    """
    cuts = separator_positions(fragment)
    candidates = [fragment[:position] for position in reversed(cuts[-MAX_REPAIR_CUTS:])]
    candidates.append(fragment)

    for candidate in candidates:
        closed = _inject_fields(close_open_brackets(candidate), inject_fields or {})
        try:
            return json.loads(closed)
        except json.JSONDecodeError:
            continue
    return None


def _coerce_library_result(repaired: Any, opener: str) -> Any:
    """Check json_repair output has the expected top-level shape."""
    if opener == "[":
        if isinstance(repaired, list):
            return repaired
        raise ValueError(f"json_repair returned {type(repaired).__name__}, expected list")

    if isinstance(repaired, dict):
        return repaired
    if isinstance(repaired, list) and repaired and isinstance(repaired[0], dict):
        # LLM sometimes wraps response in brackets: [{...}]
        if len(repaired) == 1:
            return repaired[0]
        merged: Dict[str, Any] = {}
        for item in repaired:
            if isinstance(item, dict):
                merged.update(item)
        return merged
    raise ValueError(f"json_repair returned unexpected type: {type(repaired).__name__}")


def load_llm_json(
    text: str,
    opener: str = "{",
    on_truncation: Optional[TruncationHook] = None,
) -> JsonParseResult:
    """
    Parse the JSON payload embedded in an LLM reply.

    Args:
        text: Raw LLM response text
        opener: "{" for an object payload, "[" for an array payload
        on_truncation: Optional hook called with a truncated fragment; may
            return fields to inject at top level while repairing

    Returns:
        JsonParseResult with the parsed value and the layer that produced it

    Raises:
        ValueError: If no valid JSON can be extracted or repaired
    """
    if not text or not text.strip():
        raise ValueError("Empty input: no JSON content to parse")

    fragment, complete = extract_json_fragment(strip_markdown_blocks(text), opener)

    try:
        return JsonParseResult(json.loads(fragment), "strict", truncated=not complete)
    except json.JSONDecodeError:
        pass

    if not complete:
        inject = on_truncation(fragment) if on_truncation else None
        repaired = repair_truncated_json(fragment, inject)
        if repaired is not None:
            return JsonParseResult(repaired, "truncation_repair", truncated=True)

    try:
        repaired = repair_json(fragment, return_objects=True)
        return JsonParseResult(_coerce_library_result(repaired, opener), "json_repair", truncated=not complete)
    except Exception as e:
        raise ValueError(
            f"Failed to parse or repair JSON: {e}\n"
            f"Original text (first 500 chars): {text[:500]}"
        )


def parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from an LLM response with robust error recovery.

    Example:
        >>> parse_llm_json('```json\\n{"key": "value"}\\n```')
        {'key': 'value'}
        >>> parse_llm_json("{'name': 'test',}")  # Single quotes + trailing comma
        {'name': 'test'}
    """
    return load_llm_json(text, "{").value
