"""In-process record store backing ``/api/crud/{table}``.

Tables are created lazily on first write and live for the process lifetime.
Writes to one table are serialised by that table's lock; updates and deletes
address records by id.
"""
from __future__ import annotations
import asyncio
import csv
import io
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from matura.core.errors import RecordNotFoundError, ValidationError
from matura.inference.naming import TABLE_NAME_RE
from matura.inference.types import AppSchema, SchemaField

log = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("id", "created_at")
EXPORT_FORMATS = ("json", "csv")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _type_ok(field: SchemaField, value: Any) -> bool:
    if value is None:
        return True
    if field.type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field.type == "boolean":
        return isinstance(value, bool)
    if field.type == "json":
        return True
    return isinstance(value, str)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class TableStore:
    def __init__(self):
        self._tables: Dict[str, List[Dict[str, Any]]] = {}
        self._schemas: Dict[str, AppSchema] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _check_name(self, name: str) -> str:
        if not name or not TABLE_NAME_RE.match(name):
            raise ValidationError(f"invalid table name '{name}'")
        return name

    def _lock(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    def _find(self, name: str, record_id: str) -> Dict[str, Any]:
        for record in self._tables.get(name, []):
            if record.get("id") == record_id:
                return record
        raise RecordNotFoundError(name, record_id)

    def _validate(self, name: str, data: Dict[str, Any], partial: bool) -> None:
        schema = self._schemas.get(name)
        if schema is None:
            return
        errors = []
        for f in schema.user_fields:
            if f.name in data and not _type_ok(f, data[f.name]):
                errors.append(f"{f.name}: expected {f.type}")
            elif f.required and (f.name in data or not partial) and _blank(data.get(f.name)):
                errors.append(f"{f.name}: required")
        if errors:
            raise ValidationError(f"invalid record for '{name}'", details=errors)

    def _apply_defaults(self, name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        schema = self._schemas.get(name)
        if schema is None:
            return data
        out = dict(data)
        for f in schema.user_fields:
            if f.default is not None and f.name not in out:
                out[f.name] = f.default
        return out

    def _new_record(self, name: str, data: Dict[str, Any], keep_id: bool = False) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ValidationError("record must be a JSON object")
        payload = {k: v for k, v in data.items() if k not in ("id", "created_at", "updated_at")}
        payload = self._apply_defaults(name, payload)
        self._validate(name, payload, partial=False)
        now = _now()
        record_id = data.get("id") if keep_id and isinstance(data.get("id"), str) and data.get("id") else str(uuid.uuid4())
        return {**payload, "id": record_id, "created_at": now, "updated_at": now}

    def table_names(self) -> List[str]:
        return sorted(set(self._tables) | set(self._schemas))

    def table_signatures(self) -> Dict[str, Optional[tuple]]:
        return {
            name: self._schemas[name].signature if name in self._schemas else None
            for name in self.table_names()
        }

    def has_table(self, name: str) -> bool:
        return name in self._tables or name in self._schemas

    async def create_table(self, name: str, schema: Optional[AppSchema] = None) -> None:
        self._check_name(name)
        async with self._lock(name):
            self._tables.setdefault(name, [])
            if schema is not None:
                self._schemas[name] = schema.with_table_name(name)

    async def register_schema(self, name: str, schema: AppSchema) -> None:
        await self.create_table(name, schema)
        log.info("Registered schema for %s (%d fields)", name, len(schema.fields))

    def get_schema(self, name: str) -> Optional[AppSchema]:
        return self._schemas.get(name)

    async def drop_table(self, name: str) -> bool:
        self._check_name(name)
        async with self._lock(name):
            existed = self.has_table(name)
            self._tables.pop(name, None)
            self._schemas.pop(name, None)
            return existed

    async def get(self, name: str) -> List[Dict[str, Any]]:
        """All records, newest first."""
        self._check_name(name)
        records = [dict(r) for r in reversed(self._tables.get(name, []))]
        records.sort(key=lambda r: r.get("created_at", ""), reverse=True)
        return records

    async def get_record(self, name: str, record_id: str) -> Dict[str, Any]:
        self._check_name(name)
        return dict(self._find(name, record_id))

    async def insert(self, name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self._check_name(name)
        async with self._lock(name):
            record = self._new_record(name, data)
            self._tables.setdefault(name, []).append(record)
            return dict(record)

    async def update(self, name: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        self._check_name(name)
        if not isinstance(patch, dict):
            raise ValidationError("patch must be a JSON object")
        changes = {k: v for k, v in patch.items() if k not in IMMUTABLE_FIELDS and k != "updated_at"}
        async with self._lock(name):
            record = self._find(name, record_id)
            self._validate(name, changes, partial=True)
            record.update(changes)
            record["updated_at"] = _now()
            return dict(record)

    async def delete(self, name: str, record_id: str) -> None:
        self._check_name(name)
        async with self._lock(name):
            record = self._find(name, record_id)
            self._tables[name].remove(record)

    async def import_records(self, name: str, rows: Iterable[Dict[str, Any]]) -> int:
        """Bulk insert; all rows are validated before any is stored."""
        self._check_name(name)
        async with self._lock(name):
            table = self._tables.setdefault(name, [])
            taken = {r["id"] for r in table}
            new = []
            for row in rows:
                record = self._new_record(name, row, keep_id=True)
                if record["id"] in taken:
                    record["id"] = str(uuid.uuid4())
                taken.add(record["id"])
                new.append(record)
            table.extend(new)
            return len(new)

    async def export(self, name: str, fmt: str = "json") -> str:
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(f"unsupported export format '{fmt}'")
        records = await self.get(name)
        if fmt == "json":
            return json.dumps(records, ensure_ascii=False, indent=2)

        columns: List[str] = []
        schema = self._schemas.get(name)
        if schema is not None:
            columns.extend(schema.field_names)
        for record in records:
            columns.extend(k for k in record if k not in columns)
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for record in records:
            writer.writerow({
                k: json.dumps(v, ensure_ascii=False) if isinstance(v, (dict, list)) else v
                for k, v in record.items()
            })
        return buf.getvalue()
