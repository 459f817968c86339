from dataclasses import replace
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response

from matura.api.deps import get_table_store
from matura.core.errors import ValidationError
from matura.inference.schema_inference import schema_from_payload
from matura.schemas.crud import ImportRequest, TableSchemaRequest
from matura.store.table_store import TableStore

router = APIRouter()

EXPORT_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


def _require_id(record_id: Optional[str]) -> str:
    if not record_id:
        raise ValidationError("id query parameter is required")
    return record_id


@router.get("/crud/{table}")
async def read_records(table: str, id: Optional[str] = None, store: TableStore = Depends(get_table_store)):
    if id:
        return {"data": await store.get_record(table, id)}
    return {"data": await store.get(table)}


@router.post("/crud/{table}", status_code=201)
async def create_record(
    table: str,
    data: Dict[str, Any] = Body(...),
    store: TableStore = Depends(get_table_store),
):
    return {"data": await store.insert(table, data)}


@router.put("/crud/{table}")
async def update_record(
    table: str,
    id: Optional[str] = None,
    data: Dict[str, Any] = Body(...),
    store: TableStore = Depends(get_table_store),
):
    return {"data": await store.update(table, _require_id(id), data)}


@router.delete("/crud/{table}")
async def delete_record(table: str, id: Optional[str] = None, store: TableStore = Depends(get_table_store)):
    await store.delete(table, _require_id(id))
    return {"success": True}


@router.get("/schema/{table}")
def read_schema(table: str, store: TableStore = Depends(get_table_store)):
    schema = store.get_schema(table)
    if schema is None:
        raise HTTPException(status_code=404, detail=f"No schema registered for '{table}'")
    return {"schema": schema.to_dict()}


@router.post("/schema/{table}", status_code=201)
async def register_schema(table: str, req: TableSchemaRequest, store: TableStore = Depends(get_table_store)):
    try:
        schema = schema_from_payload({
            "table_name": table,
            "description": req.description,
            "fields": [f.model_dump() for f in req.fields],
        })
    except ValueError as e:
        raise ValidationError(str(e)) from e
    await store.register_schema(table, replace(schema, source="manual"))
    return {"schema": store.get_schema(table).to_dict()}


@router.delete("/schema/{table}")
async def drop_table(table: str, store: TableStore = Depends(get_table_store)):
    if not await store.drop_table(table):
        raise HTTPException(status_code=404, detail=f"Table '{table}' does not exist")
    return {"success": True}


@router.get("/export/{table}")
async def export_table(
    table: str,
    format: str = Query("json"),
    store: TableStore = Depends(get_table_store),
):
    body = await store.export(table, format)
    return Response(
        content=body,
        media_type=EXPORT_MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{table}.{format}"'},
    )


@router.post("/import/{table}")
async def import_table(table: str, req: ImportRequest, store: TableStore = Depends(get_table_store)):
    imported = await store.import_records(table, req.records)
    return {"success": True, "imported": imported}
