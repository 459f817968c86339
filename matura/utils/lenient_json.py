"""Lenient JSON decoding for LLM output.

Strategies are tried in a fixed order and stop at the first success:

1. parse the text as-is
2. strip markdown code fences and parse
3. extract the outermost balanced ``{...}`` (or ``[...]``) and parse
4. one cleanup pass over that candidate (comments, unquoted keys,
   single quotes, trailing commas) and parse

If every strategy fails the caller's default is returned, or
``LenientJSONError`` is raised when no default was given.
"""
from __future__ import annotations
import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json|JSON|javascript|js)?\s*([\s\S]*?)```")
_LINE_COMMENT_RE = re.compile(r"(?m)^\s*//.*$|(?<=[,{\[\s])//[^\n\"]*$")
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_UNQUOTED_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SINGLE_QUOTED_RE = re.compile(r"'([^'\\]*(?:\\.[^'\\]*)*)'")

_MISSING = object()


class LenientJSONError(ValueError):
    pass


def _try(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return _MISSING


def strip_fences(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()


def extract_outermost(text: str) -> Optional[str]:
    """Return the first balanced JSON object/array in ``text``, string-aware."""
    start = -1
    for i, ch in enumerate(text):
        if ch in "{[":
            start = i
            break
    if start < 0:
        return None

    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_str = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def cleanup(text: str) -> str:
    text = _BLOCK_COMMENT_RE.sub("", text)
    text = _LINE_COMMENT_RE.sub("", text)
    text = _SINGLE_QUOTED_RE.sub(lambda m: json.dumps(m.group(1)), text)
    text = _UNQUOTED_KEY_RE.sub(r'\1"\2"\3', text)
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return text


def loads_lenient(text: Any, default: Any = _MISSING) -> Any:
    if not isinstance(text, str):
        if default is _MISSING:
            raise LenientJSONError(f"expected str, got {type(text).__name__}")
        return default

    value = _try(text)
    if value is not _MISSING:
        return value

    unfenced = strip_fences(text)
    value = _try(unfenced)
    if value is not _MISSING:
        return value

    candidate = extract_outermost(unfenced)
    if candidate is not None:
        value = _try(candidate)
        if value is not _MISSING:
            return value
        value = _try(cleanup(candidate))
        if value is not _MISSING:
            return value

    if default is _MISSING:
        raise LenientJSONError("could not decode JSON from provider output")
    return default
