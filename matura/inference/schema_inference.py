from __future__ import annotations
import logging
import re
from dataclasses import replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from matura.core.errors import MaturaError, ValidationError
from matura.core.logging import summarize
from matura.inference.naming import normalize_identifier, normalize_table_name
from matura.inference.types import FIELD_TYPES, SYSTEM_FIELD_NAMES, AppSchema, Intent, SchemaField
from matura.orchestration.chain import ProviderChain
from matura.providers.base import FunctionSpec, ProviderResponse
from matura.utils.lenient_json import loads_lenient

log = logging.getLogger(__name__)

PATTERNS_PATH = Path(__file__).with_name("patterns.yaml")
MAX_FIELDS = 30

TYPE_ALIASES = {
    "string": "text", "str": "text", "varchar": "text", "char": "text", "uuid": "text",
    "longtext": "textarea", "richtext": "textarea", "markdown": "textarea",
    "int": "number", "integer": "number", "float": "number", "decimal": "number",
    "double": "number", "numeric": "number", "currency": "number", "money": "number",
    "bool": "boolean", "checkbox": "boolean",
    "timestamp": "datetime", "timestamptz": "datetime", "date-time": "datetime", "time": "datetime",
    "phone": "tel", "link": "url", "image": "url",
    "enum": "select", "choice": "select",
    "object": "json", "array": "json", "jsonb": "json", "list": "json",
}

BASE_FIELDS = (
    SchemaField(name="id", type="text", required=True, label="ID", system=True),
    SchemaField(name="created_at", type="datetime", label="作成日時", system=True),
    SchemaField(name="updated_at", type="datetime", label="更新日時", system=True),
)

SCHEMA_FUNCTION = FunctionSpec(
    name="infer_app_schema",
    description="Design a single database table for the application the user describes.",
    parameters={
        "type": "object",
        "properties": {
            "category": {"type": "string", "description": "App category"},
            "table_name": {"type": "string", "description": "snake_case English table name"},
            "description": {"type": "string"},
            "fields": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "type": {"type": "string", "enum": list(FIELD_TYPES)},
                        "required": {"type": "boolean"},
                        "label": {"type": "string"},
                        "default": {},
                        "options": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["name", "type"],
                },
            },
        },
        "required": ["table_name", "fields"],
    },
)

SCHEMA_SYSTEM_PROMPT = (
    "You design database schemas for small CRUD web apps. "
    "Return one table with an English snake_case name and 3-12 user-facing fields. "
    "Do not include id, created_at or updated_at."
)


@lru_cache(maxsize=1)
def load_patterns() -> Dict[str, Any]:
    with PATTERNS_PATH.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def keyword_hit(text: str, keywords: List[str]) -> bool:
    lowered = text.lower()
    for kw in keywords:
        kw = str(kw).lower()
        if kw.isascii():
            if re.search(r"\b" + re.escape(kw), lowered):
                return True
        elif kw in lowered:
            return True
    return False


def normalize_type(raw: Any) -> str:
    t = str(raw or "text").strip().lower()
    if t in FIELD_TYPES:
        return t
    return TYPE_ALIASES.get(t, "text")


def normalize_fields(raw_fields: List[Any]) -> List[SchemaField]:
    """Canonical user fields: snake_case names, known types, no duplicates, no system fields."""
    out: List[SchemaField] = []
    seen = set()
    for raw in raw_fields:
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        name = normalize_identifier(str(raw["name"]), "")
        if not name or name in seen or name in SYSTEM_FIELD_NAMES:
            continue
        seen.add(name)
        options = raw.get("options") or ()
        out.append(SchemaField(
            name=name,
            type=normalize_type(raw.get("type")),
            required=bool(raw.get("required", False)),
            label=str(raw.get("label") or name),
            default=raw.get("default"),
            options=tuple(str(o) for o in options) if isinstance(options, (list, tuple)) else (),
        ))
        if len(out) >= MAX_FIELDS:
            break
    return out


def ensure_base_fields(schema: AppSchema) -> AppSchema:
    """Append id/created_at/updated_at exactly once, after the user fields."""
    user = tuple(f for f in schema.fields if f.name not in SYSTEM_FIELD_NAMES)
    return replace(schema, fields=user + BASE_FIELDS)


def schema_from_pattern(entry: Dict[str, Any], source: str) -> AppSchema:
    schema = AppSchema(
        table_name=entry["table_name"],
        fields=tuple(normalize_fields(entry["fields"])),
        description=entry.get("description", ""),
        source=source,
    )
    return ensure_base_fields(schema)


def infer_from_keywords(idea: str) -> AppSchema:
    patterns = load_patterns()
    for entry in patterns["tables"]:
        if keyword_hit(idea, entry["keywords"]):
            return schema_from_pattern(entry, source="keyword")
    return schema_from_pattern(patterns["generic"], source="generic")


def schema_from_payload(data: Any) -> AppSchema:
    """Validate a provider payload and build a normalized schema. Raises ValueError on bad shape."""
    if isinstance(data, str):
        data = loads_lenient(data, default=None)
    if not isinstance(data, dict):
        raise ValueError("schema payload is not an object")

    raw_name = data.get("table_name") or data.get("tableName")
    raw_fields = data.get("fields") or data.get("columns")
    if not raw_name or not isinstance(raw_name, str):
        raise ValueError("schema payload has no table name")
    if not isinstance(raw_fields, list) or not raw_fields:
        raise ValueError("schema payload has no fields")
    if any(not isinstance(f, dict) or not f.get("name") or not f.get("type") for f in raw_fields):
        raise ValueError("every field needs a name and a type")

    fields = normalize_fields(raw_fields)
    if not fields:
        raise ValueError("schema payload has only system fields")

    schema = AppSchema(
        table_name=normalize_table_name(raw_name),
        fields=tuple(fields),
        description=str(data.get("description") or ""),
        source="ai",
    )
    return ensure_base_fields(schema)


def _prompt(idea: str, intent: Optional[Intent]) -> str:
    lines = [f"App idea: {idea}"]
    if intent is not None:
        lines.append(f"Category: {intent.category}")
        if intent.key_features:
            lines.append("Key features: " + ", ".join(intent.key_features))
        if intent.enhanced_description:
            lines.append(f"Details: {intent.enhanced_description}")
    return "\n".join(lines)


class SchemaInferenceEngine:
    def __init__(self, chain: Optional[ProviderChain] = None, request_id: str = "-"):
        self.chain = chain
        self.request_id = request_id

    async def infer(self, idea: str, intent: Optional[Intent] = None) -> Tuple[AppSchema, Optional[ProviderResponse]]:
        """Schema plus the provider response it came from (None when a fallback was used)."""
        if not idea or not idea.strip():
            raise ValidationError("idea must not be empty")
        idea = idea.strip()
        ctx = {"request_id": self.request_id, "stage": "SCHEMA_INFERENCE"}

        if self.chain is not None and self.chain.available:
            try:
                response = await self.chain.structured(SCHEMA_FUNCTION, SCHEMA_SYSTEM_PROMPT, _prompt(idea, intent))
                return schema_from_payload(response.data), response
            except (MaturaError, ValueError) as e:
                log.warning(
                    "AI schema inference failed, using keyword fallback: %s (idea=%r)",
                    e, summarize(idea), extra=ctx,
                )

        schema = infer_from_keywords(idea)
        log.info("Keyword schema %s (%s)", schema.table_name, schema.source, extra=ctx)
        return schema, None

    async def infer_schema(self, idea: str, intent: Optional[Intent] = None) -> AppSchema:
        schema, _ = await self.infer(idea, intent)
        return schema
