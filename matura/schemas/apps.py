from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

AppStatus = Literal["active", "archived", "draft"]


class AppCreateRequest(BaseModel):
    name: Optional[str] = None
    user_idea: str = Field(..., examples=["家計簿アプリ"])
    generated_code: str
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    description: Optional[str] = None
    table_name: Optional[str] = None
    preview_url: Optional[str] = None
    status: AppStatus = "active"
    owner_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class AppUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[AppStatus] = None
    preview_url: Optional[str] = None


class AppResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    user_idea: str
    table_name: Optional[str] = None
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema", serialization_alias="schema")
    metadata: Dict[str, Any] = {}
    preview_url: Optional[str] = None
    status: str
    owner_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    generated_code: Optional[str] = None

    model_config = {"populate_by_name": True}


class AppListResponse(BaseModel):
    apps: List[AppResponse]
    count: int
