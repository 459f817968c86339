"""Validation passes over generated component source.

Each check returns ``Issue`` objects. Auto-fixable issues have a
deterministic patch in ``matura.repair.fixes``; fatal ones need the
generator.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from matura.generators.component_gen.contract import (
    check_crud_contract,
    find_table_name,
    has_default_export,
    unbalanced_delimiter,
)

REACT_HOOKS = ("useState", "useEffect", "useMemo", "useCallback", "useRef", "useReducer", "useContext")

UI_COMPONENTS: Dict[str, str] = {
    "Button": "button",
    "Input": "input",
    "Label": "label",
    "Textarea": "textarea",
    "Checkbox": "checkbox",
    "Badge": "badge",
    "Switch": "switch",
    "Card": "card",
    "CardHeader": "card",
    "CardTitle": "card",
    "CardDescription": "card",
    "CardContent": "card",
    "CardFooter": "card",
    "Table": "table",
    "TableHeader": "table",
    "TableBody": "table",
    "TableRow": "table",
    "TableHead": "table",
    "TableCell": "table",
    "Dialog": "dialog",
    "DialogTrigger": "dialog",
    "DialogContent": "dialog",
    "DialogHeader": "dialog",
    "DialogTitle": "dialog",
    "Select": "select",
    "SelectTrigger": "select",
    "SelectValue": "select",
    "SelectContent": "select",
    "SelectItem": "select",
}

_IMPORT_RE = re.compile(
    r"^\s*import\s+(?:type\s+)?(?:(\w+)\s*,?\s*)?(?:\*\s+as\s+(\w+)\s*)?(?:\{([^}]*)\})?\s*from\s*['\"][^'\"]+['\"]",
    re.MULTILINE,
)
_DIRECTIVE_RE = re.compile(r"^\s*['\"]use client['\"]")
_UNTYPED_STATE_RE = re.compile(r"useState\((\[\]|null|\{\})\)")
LOOSE_EQ_RE = re.compile(r"(?<![=!<>])(==|!=)(?!=)")
_STRING_LITERAL_RE = re.compile(r"'[^']*'|\"[^\"]*\"|`[^`]*`")


def mask_string_literals(text: str) -> str:
    """Blank out string literal contents, keeping every column in place."""
    return _STRING_LITERAL_RE.sub(lambda m: m.group(0)[0] + " " * (len(m.group(0)) - 2) + m.group(0)[-1], text)


@dataclass(frozen=True)
class Issue:
    code: str
    message: str
    auto_fixable: bool
    line: Optional[int] = None
    names: tuple = ()

    @property
    def fatal(self) -> bool:
        return not self.auto_fixable

    def __str__(self) -> str:
        where = f" (line {self.line})" if self.line else ""
        return f"{self.code}: {self.message}{where}"


def imported_names(source: str) -> Set[str]:
    names: Set[str] = set()
    for default, namespace, named in _IMPORT_RE.findall(source):
        if default:
            names.add(default)
        if namespace:
            names.add(namespace)
        for part in (named or "").split(","):
            part = part.strip()
            if not part:
                continue
            part = re.sub(r"^type\s+", "", part)
            alias = part.split(" as ")[-1].strip()
            names.add(alias)
    return names


def _line_of(source: str, index: int) -> int:
    return source.count("\n", 0, index) + 1


def _code_lines(source: str):
    """(line_number, text) for lines that are not import statements or comments."""
    for no, text in enumerate(source.splitlines(), start=1):
        stripped = text.strip()
        if stripped.startswith(("import ", "//", "*", "/*")):
            continue
        yield no, text


def check_types(source: str) -> List[Issue]:
    issues = []
    for m in _UNTYPED_STATE_RE.finditer(source):
        issues.append(Issue(
            code="untyped-state",
            message=f"useState({m.group(1)}) infers a too-narrow type",
            auto_fixable=True,
            line=_line_of(source, m.start()),
        ))
    return issues


def check_lint(source: str) -> List[Issue]:
    issues = []
    uses_hooks = any(re.search(r"\b" + hook + r"\s*[(<]", source) for hook in REACT_HOOKS)
    first_code = next((l for l in source.splitlines() if l.strip() and not l.strip().startswith("//")), "")
    if uses_hooks and not _DIRECTIVE_RE.match(first_code):
        issues.append(Issue("missing-use-client", "client hooks used without 'use client' directive", True, 1))

    for no, text in _code_lines(source):
        if LOOSE_EQ_RE.search(mask_string_literals(text)):
            issues.append(Issue("loose-equality", "use === / !== instead of == / !=", True, no))
    return issues


def check_imports(source: str) -> List[Issue]:
    imported = imported_names(source)
    body = "\n".join(text for _, text in _code_lines(source))

    missing_hooks = tuple(h for h in REACT_HOOKS if re.search(r"\b" + h + r"\s*[(<]", body) and h not in imported)
    issues = []
    if missing_hooks:
        issues.append(Issue(
            "missing-import", f"React hooks used but not imported: {', '.join(missing_hooks)}",
            True, names=tuple(("react", h) for h in missing_hooks),
        ))

    missing_ui = tuple(
        name for name in UI_COMPONENTS
        if re.search(r"<" + name + r"[\s/>]", body) and name not in imported
    )
    if missing_ui:
        issues.append(Issue(
            "missing-import", f"UI components used but not imported: {', '.join(missing_ui)}",
            True, names=tuple((f"@/components/ui/{UI_COMPONENTS[n]}", n) for n in missing_ui),
        ))
    return issues


def check_structure(source: str, table_name: Optional[str] = None) -> List[Issue]:
    issues = []
    imbalance = unbalanced_delimiter(source)
    if imbalance:
        issues.append(Issue("unbalanced", imbalance, False))
    if not has_default_export(source):
        issues.append(Issue("no-default-export", "component has no default export", False))

    table = table_name or find_table_name(source)
    if table is None:
        issues.append(Issue("crud-contract", "does not call any /api/crud/{table} endpoint", False))
    else:
        for violation in check_crud_contract(source, table):
            issues.append(Issue("crud-contract", violation, False))
    return issues


def validate_source(source: str, table_name: Optional[str] = None) -> List[Issue]:
    return (
        check_structure(source, table_name)
        + check_types(source)
        + check_lint(source)
        + check_imports(source)
    )
