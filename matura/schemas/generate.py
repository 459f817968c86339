from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

Mode = Literal["quick", "advanced", "premium", "template"]


class GenerateRequest(BaseModel):
    idea: str = Field(..., examples=["タスク管理アプリを作りたい"])
    mode: Mode = "advanced"
    use_design_system: bool = True
    figma_file_key: Optional[str] = None
    save: bool = True
    owner_id: Optional[str] = None


class GeneratedAppPayload(BaseModel):
    id: Optional[str] = None
    name: str
    table_name: str
    component_name: str
    schema_: Dict[str, Any] = Field(..., alias="schema", serialization_alias="schema")
    code: str
    design: Optional[Dict[str, Any]] = None
    intent: Dict[str, Any]

    model_config = {"populate_by_name": True}


class GenerateResponse(BaseModel):
    success: bool = True
    status: Literal["complete", "partial"]
    app: GeneratedAppPayload
    metadata: Dict[str, Any]


class InferSchemaRequest(BaseModel):
    idea: str = Field(..., examples=["家計簿アプリ"])


class InferSchemaResponse(BaseModel):
    success: bool = True
    schema_: Dict[str, Any] = Field(..., alias="schema", serialization_alias="schema")
    fallback: bool
    source: str
    provider: Optional[str] = None

    model_config = {"populate_by_name": True}


class QualityCheckRequest(BaseModel):
    code: str
    table_name: Optional[str] = None


class IssueOut(BaseModel):
    code: str
    message: str
    auto_fixable: bool
    line: Optional[int] = None


class QualityCheckResponse(BaseModel):
    success: bool = True
    valid: bool
    issues: List[IssueOut] = []
    scores: Dict[str, Any]
