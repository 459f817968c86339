from __future__ import annotations
import asyncio
import logging
from sqlalchemy.orm import Session
from matura.tasks.celery_app import celery_app
from matura.db.session import SessionLocal
from matura.db.models import GenerationJob
from matura.core.config import settings
from matura.core.context import GenerateOptions
from matura.core.engine import GenerationEngine
from matura.core.errors import MaturaError, PersistenceError, PipelineFailedError
from matura.core.workflow import GenerationStage
from matura.inference.naming import generate_app_name
from matura.providers.registry import ProviderRegistry
from matura.services.apps import save_generated_app

log = logging.getLogger(__name__)


def _stage_recorder(db: Session, job: GenerationJob):
    def on_stage(stage: GenerationStage) -> None:
        job.stage = stage
        db.commit()
    return on_stage


@celery_app.task(name="run_generation_job")
def run_generation_job(job_id: str) -> None:
    db: Session = SessionLocal()
    try:
        job = db.get(GenerationJob, job_id)
        if not job:
            log.error("Job not found", extra={"request_id": job_id, "stage": "-"})
            return

        job.status = "RUNNING"
        db.commit()
        log.info("Starting generation", extra={"request_id": job_id, "stage": str(job.stage.value)})

        opts = job.options or {}
        options = GenerateOptions(
            use_design_system=opts.get("use_design_system", True),
            figma_file_key=opts.get("figma_file_key"),
            write_files=settings.write_generated_files,
        )
        engine = GenerationEngine(ProviderRegistry.from_settings(settings), settings)
        result = asyncio.run(engine.run(
            job.idea, job.mode, options, on_stage=_stage_recorder(db, job), request_id=job_id,
        ))

        payload = {"status": result.status, "app": result.to_app(), "metadata": result.to_metadata()}
        if opts.get("save", True):
            try:
                app = save_generated_app(
                    db,
                    name=generate_app_name(job.idea),
                    user_idea=job.idea,
                    generated_code=result.code,
                    schema=result.schema.to_dict(),
                    description=result.intent.enhanced_description or result.intent.primary_purpose,
                    table_name=result.schema.table_name,
                    metadata=result.to_metadata(),
                )
                job.app_id = app.id
            except PersistenceError as e:
                log.warning("Generated app not saved: %s", e.message, extra={"request_id": job_id, "stage": "DONE"})
                payload["metadata"]["persistence_error"] = e.message

        job.result = payload
        job.status = "DONE"
        job.stage = GenerationStage.DONE
        db.commit()
        log.info("Generation completed", extra={"request_id": job_id, "stage": "DONE"})

    except Exception as e:
        db.rollback()
        job = db.get(GenerationJob, job_id)
        stage = str(job.stage.value) if job else "-"
        log.exception("Generation failed", extra={"request_id": job_id, "stage": stage})
        if job:
            job.status = "FAILED"
            job.stage = GenerationStage.FAILED
            job.error_message = e.message if isinstance(e, MaturaError) else str(e)
            if isinstance(e, PipelineFailedError):
                job.result = {"error_category": e.category, "recovery_suggestion": e.recovery_suggestion}
            db.commit()
    finally:
        db.close()
