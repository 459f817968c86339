import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from matura.api.deps import enforce_rate_limit, get_engine, get_table_store
from matura.core.config import settings
from matura.core.context import GenerateOptions
from matura.core.engine import GenerationEngine
from matura.core.errors import PersistenceError, ValidationError
from matura.db.session import get_db
from matura.inference.naming import generate_app_name
from matura.inference.schema_inference import SchemaInferenceEngine
from matura.inference.types import Intent
from matura.quality.scorer import score_component
from matura.repair.validators import validate_source
from matura.schemas.generate import (
    GenerateRequest,
    GenerateResponse,
    GeneratedAppPayload,
    InferSchemaRequest,
    InferSchemaResponse,
    IssueOut,
    QualityCheckRequest,
    QualityCheckResponse,
)
from matura.services.apps import save_generated_app
from matura.store.table_store import TableStore

log = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.post("/generate", response_model=GenerateResponse, response_model_by_alias=True)
async def generate(
    req: GenerateRequest,
    db: Session = Depends(get_db),
    engine: GenerationEngine = Depends(get_engine),
    store: TableStore = Depends(get_table_store),
):
    request_id = str(uuid.uuid4())
    options = GenerateOptions(
        use_design_system=req.use_design_system,
        figma_file_key=req.figma_file_key,
        write_files=settings.write_generated_files,
        taken_tables=store.table_signatures(),
    )
    result = await engine.run(req.idea, req.mode, options, request_id=request_id)

    # generated components call /api/crud/{table}; the name was claimed during schema inference
    await store.register_schema(result.schema.table_name, result.schema)

    name = generate_app_name(req.idea)
    metadata = result.to_metadata()
    metadata["saved"] = False
    app_id = None
    if req.save:
        try:
            app = await run_in_threadpool(
                save_generated_app,
                db,
                name=name,
                user_idea=req.idea,
                generated_code=result.code,
                schema=result.schema.to_dict(),
                description=result.intent.enhanced_description or result.intent.primary_purpose,
                table_name=result.schema.table_name,
                metadata=result.to_metadata(),
                owner_id=req.owner_id,
            )
            app_id = app.id
            metadata["saved"] = True
        except PersistenceError as e:
            log.warning(
                "Generated app not saved: %s", e.message,
                extra={"request_id": request_id, "stage": "DONE"},
            )
            metadata["persistence_error"] = e.message

    app_payload = result.to_app()
    return GenerateResponse(
        status=result.status,
        app=GeneratedAppPayload(id=app_id, name=name, **app_payload),
        metadata=metadata,
    )


@router.post("/infer-schema", response_model=InferSchemaResponse, response_model_by_alias=True)
async def infer_schema(req: InferSchemaRequest, engine: GenerationEngine = Depends(get_engine)):
    if len(req.idea.strip()) > engine.settings.max_idea_length:
        raise ValidationError(f"idea is longer than {engine.settings.max_idea_length} characters")
    request_id = str(uuid.uuid4())
    inference = SchemaInferenceEngine(engine.env.chain("schema"), request_id=request_id)
    schema, response = await inference.infer(req.idea)
    return InferSchemaResponse(
        schema=schema.to_dict(),
        fallback=response is None,
        source=schema.source,
        provider=response.provider if response is not None else None,
    )


@router.post("/quality-check", response_model=QualityCheckResponse)
def quality_check(req: QualityCheckRequest):
    issues = validate_source(req.code, req.table_name)
    intent = Intent(category="utility", primary_purpose="")
    scores = score_component(req.code, intent, None, table_name=req.table_name, issues=issues)
    return QualityCheckResponse(
        valid=not issues,
        issues=[IssueOut(code=i.code, message=i.message, auto_fixable=i.auto_fixable, line=i.line) for i in issues],
        scores=scores.to_dict(),
    )
