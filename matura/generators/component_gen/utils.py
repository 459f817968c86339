"""Utility functions for component generation."""
import json
from typing import Any, Dict

from matura.inference.naming import to_pascal_case
from matura.inference.types import AppSchema, SchemaField

TS_TYPES = {
    "number": "number",
    "boolean": "boolean",
}

INPUT_TYPES = {
    "number": "number",
    "date": "date",
    "datetime": "datetime-local",
    "email": "email",
    "url": "url",
    "tel": "tel",
}


def crud_endpoint(table_name: str) -> str:
    return f"/api/crud/{table_name}"


def component_name(schema: AppSchema) -> str:
    return f"{to_pascal_case(schema.table_name)}App"


def record_type_name(schema: AppSchema) -> str:
    name = to_pascal_case(schema.table_name)
    # naive singular for the record interface
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name + "Record"


def ts_type(field: SchemaField) -> str:
    return TS_TYPES.get(field.type, "string")


def input_type(field: SchemaField) -> str:
    return INPUT_TYPES.get(field.type, "text")


def default_value(field: SchemaField) -> Any:
    """Initial form value for a field."""
    if field.default is not None:
        return field.default
    if field.type == "number":
        return 0
    if field.type == "boolean":
        return False
    if field.type == "select" and field.options:
        return field.options[0]
    return ""


def initial_form(schema: AppSchema) -> Dict[str, Any]:
    return {f.name: default_value(f) for f in schema.user_fields}


def ts_literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)
