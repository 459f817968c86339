"""Static checks that generated source is complete and speaks the CRUD contract."""
import re
from typing import List, Optional

from matura.generators.component_gen.utils import crud_endpoint

ENDPOINT_RE = re.compile(r"/api/crud/([a-z][a-z0-9_]*)")
_PAIRS = {")": "(", "]": "[", "}": "{"}


def _method_re(verb: str) -> re.Pattern:
    return re.compile(r"method\s*:\s*['\"`]" + verb + r"['\"`]", re.IGNORECASE)


# fetch(url) with no init object is a GET
_BARE_FETCH_RE = re.compile(r"fetch\(\s*[^,()]+(?:\([^()]*\))?\s*\)")


def find_table_name(source: str) -> Optional[str]:
    m = ENDPOINT_RE.search(source)
    return m.group(1) if m else None


def has_default_export(source: str) -> bool:
    return re.search(r"^\s*export\s+default\b", source, re.MULTILINE) is not None


def unbalanced_delimiter(source: str) -> Optional[str]:
    """Describe the first delimiter imbalance, ignoring strings and comments.

    Quoted strings end at a newline so stray apostrophes in JSX text cannot
    swallow the rest of the file.
    """
    stack: List[str] = []
    # '`' marks a template literal; '${' re-enters code inside one
    modes: List[str] = []
    i = 0
    n = len(source)
    line = 1
    while i < n:
        ch = source[i]
        if ch == "\n":
            line += 1
        in_template = bool(modes) and modes[-1] == "`"
        if in_template:
            if ch == "\\":
                i += 2
                continue
            if ch == "`":
                modes.pop()
            elif ch == "$" and i + 1 < n and source[i + 1] == "{":
                modes.append("${")
                stack.append("${")
                i += 2
                continue
            i += 1
            continue

        if ch == "/" and i + 1 < n and source[i + 1] == "/":
            end = source.find("\n", i)
            i = n if end < 0 else end
            continue
        if ch == "/" and i + 1 < n and source[i + 1] == "*":
            end = source.find("*/", i + 2)
            if end < 0:
                return f"unterminated block comment starting on line {line}"
            line += source.count("\n", i, end)
            i = end + 2
            continue
        if ch in ("'", '"'):
            j = i + 1
            while j < n and source[j] not in (ch, "\n"):
                j += 2 if source[j] == "\\" else 1
            i = j + 1 if j < n and source[j] == ch else j
            continue
        if ch == "`":
            modes.append("`")
        elif ch in "([{":
            stack.append(ch)
        elif ch in ")]}":
            if not stack:
                return f"unexpected '{ch}' on line {line}"
            top = stack.pop()
            if top == "${":
                if ch != "}":
                    return f"unexpected '{ch}' on line {line}"
                modes.pop()
            elif top != _PAIRS[ch]:
                return f"mismatched '{ch}' on line {line}"
        i += 1

    if modes and modes[-1] == "`":
        return "unterminated template literal"
    if stack:
        return f"unclosed '{stack[-1]}' at end of file"
    return None


def check_crud_contract(source: str, table_name: str) -> List[str]:
    """Return the contract violations (empty when all four verbs are wired)."""
    endpoint = crud_endpoint(table_name)
    if endpoint not in source:
        return [f"does not reference {endpoint}"]

    violations = []
    if not (_method_re("GET").search(source) or _BARE_FETCH_RE.search(source)):
        violations.append("no GET request for the record list")
    if not _method_re("POST").search(source):
        violations.append("no POST request for create")
    if not _method_re("PUT").search(source):
        violations.append("no PUT request for update")
    if not _method_re("DELETE").search(source):
        violations.append("no DELETE request for delete")
    if ("PUT" in source or "DELETE" in source) and "?id=" not in source:
        violations.append("update/delete must pass the record id as ?id=")
    return violations
