"""Deterministic patches for auto-fixable issues."""
from __future__ import annotations
import re
from typing import Dict, List, Tuple

from matura.repair.validators import LOOSE_EQ_RE, Issue, mask_string_literals

_TYPE_WIDENING = {
    "[]": "useState<any[]>([])",
    "null": "useState<any>(null)",
    "{}": "useState<Record<string, any>>({})",
}


def widen_state_types(source: str) -> str:
    return re.sub(r"useState\((\[\]|null|\{\})\)", lambda m: _TYPE_WIDENING[m.group(1)], source)


def add_use_client(source: str) -> str:
    return "'use client'\n\n" + source.lstrip("\n")


def strict_equality(source: str, lines: List[int]) -> str:
    out = source.splitlines(keepends=True)
    for no in lines:
        idx = no - 1
        if 0 <= idx < len(out):
            line = out[idx]
            masked = mask_string_literals(line)
            # right to left so earlier offsets stay valid
            for m in reversed(list(LOOSE_EQ_RE.finditer(masked))):
                line = line[:m.end()] + "=" + line[m.end():]
            out[idx] = line
    return "".join(out)


def _insert_position(lines: List[str]) -> int:
    """Index after the last import (or after the directive when there are none)."""
    last_import = -1
    directive = -1
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("import "):
            last_import = i
        elif re.match(r"['\"]use client['\"]", stripped) and directive < 0:
            directive = i
    if last_import >= 0:
        return last_import + 1
    return directive + 1 if directive >= 0 else 0


def add_named_imports(source: str, wanted: List[Tuple[str, str]]) -> str:
    """Merge ``(module, name)`` pairs into existing ``import { ... } from module`` lines or add new ones."""
    by_module: Dict[str, List[str]] = {}
    for module, name in wanted:
        by_module.setdefault(module, [])
        if name not in by_module[module]:
            by_module[module].append(name)

    for module, names in by_module.items():
        pattern = re.compile(r"^(\s*import\s*\{)([^}]*)(\}\s*from\s*['\"]" + re.escape(module) + r"['\"].*)$", re.MULTILINE)
        m = pattern.search(source)
        if m:
            existing = [n.strip() for n in m.group(2).split(",") if n.strip()]
            merged = existing + [n for n in names if n not in existing]
            source = source[:m.start()] + f"{m.group(1)} {', '.join(merged)} {m.group(3)}" + source[m.end():]
        else:
            lines = source.splitlines(keepends=True)
            pos = _insert_position(lines)
            lines.insert(pos, f"import {{ {', '.join(names)} }} from '{module}'\n")
            source = "".join(lines)
    return source


def apply_fixes(source: str, issues: List[Issue]) -> Tuple[str, List[str]]:
    """Apply every fix the issues call for. Returns the new source and the fix names applied."""
    applied: List[str] = []
    codes = {i.code for i in issues if i.auto_fixable}

    if "untyped-state" in codes:
        source = widen_state_types(source)
        applied.append("widen-state-types")

    if "loose-equality" in codes:
        lines = [i.line for i in issues if i.code == "loose-equality" and i.line]
        source = strict_equality(source, lines)
        applied.append("strict-equality")

    if "missing-import" in codes:
        wanted = [pair for i in issues if i.code == "missing-import" for pair in i.names]
        source = add_named_imports(source, wanted)
        applied.append("add-imports")

    # directive last so earlier line numbers stay valid
    if "missing-use-client" in codes:
        source = add_use_client(source)
        applied.append("add-use-client")

    return source, applied
