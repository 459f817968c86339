"""Identifier helpers for table, field and component names."""
import re
from typing import Iterable

TABLE_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")

# SQL keywords plus tables the service owns itself.
RESERVED_NAMES = {
    "select", "insert", "update", "delete", "from", "where", "table", "user",
    "order", "group", "index", "key", "primary", "references", "default",
    "check", "column", "constraint", "create", "drop", "alter", "join",
    "limit", "offset", "union", "values", "null", "true", "false", "and",
    "or", "not", "as", "by", "in", "is", "on", "to", "all", "any",
    "generated_apps", "generation_jobs", "alembic_version", "crud", "schema",
}

MAX_IDENTIFIER_LENGTH = 63


def to_snake_case(name: str) -> str:
    """Convert PascalCase, camelCase, kebab-case or spaced words to snake_case."""
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    s2 = re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1)
    s3 = re.sub(r'[^A-Za-z0-9]+', '_', s2)
    return re.sub(r'_+', '_', s3).strip('_').lower()


def to_pascal_case(name: str) -> str:
    return "".join(part.capitalize() for part in to_snake_case(name).split("_") if part)


def normalize_identifier(name: str, fallback: str) -> str:
    """Lower snake_case identifier starting with a letter, or ``fallback``."""
    ident = to_snake_case(name or "")
    ident = re.sub(r'^[^a-z]+', '', ident)
    ident = ident[:MAX_IDENTIFIER_LENGTH].rstrip('_')
    return ident if TABLE_NAME_RE.match(ident) else fallback


def normalize_table_name(name: str, fallback: str = "custom_data") -> str:
    ident = normalize_identifier(name, fallback)
    if ident in RESERVED_NAMES:
        ident = f"{ident}_records"
    return ident


def disambiguate_table_name(name: str, taken: Iterable[str]) -> str:
    """Append ``_2``, ``_3``, ... until ``name`` no longer collides."""
    taken = set(taken)
    if name not in taken:
        return name
    n = 2
    while f"{name}_{n}" in taken:
        n += 1
    return f"{name}_{n}"


def generate_app_name(idea: str, limit: int = 30) -> str:
    """Short display name from the first sentence of an idea."""
    first = re.split(r'[。．.!?！？\n]', idea.strip(), maxsplit=1)[0] if idea else ""
    cleaned = re.sub(r'[^\w\s\-ー]', '', first).strip()
    cleaned = re.sub(r'\s+', ' ', cleaned)
    if not cleaned:
        return "Generated App"
    return cleaned[:limit].rstrip()
