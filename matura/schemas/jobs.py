from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from matura.core.workflow import GenerationStage
from matura.schemas.generate import Mode


class JobCreateRequest(BaseModel):
    idea: str = Field(..., examples=["在庫管理アプリ"])
    mode: Mode = "advanced"
    use_design_system: bool = True
    figma_file_key: Optional[str] = None
    save: bool = True


class JobResponse(BaseModel):
    id: str
    idea: str
    mode: str
    stage: GenerationStage
    status: str
    error_message: Optional[str] = None
    result: Dict[str, Any] = {}
    app_id: Optional[str] = None
