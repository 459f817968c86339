from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class SchemaFieldIn(BaseModel):
    name: str
    type: str = "text"
    required: bool = False
    label: Optional[str] = None
    default: Any = None
    options: List[str] = []


class TableSchemaRequest(BaseModel):
    fields: List[SchemaFieldIn]
    description: str = ""


class ImportRequest(BaseModel):
    records: List[Dict[str, Any]]
