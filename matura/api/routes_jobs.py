from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from matura.api.deps import enforce_rate_limit
from matura.db.session import get_db
from matura.db.models import GenerationJob
from matura.schemas.jobs import JobCreateRequest, JobResponse
from matura.tasks.jobs import run_generation_job

router = APIRouter(prefix="/jobs")


def _job_response(job: GenerationJob) -> JobResponse:
    return JobResponse(
        id=job.id,
        idea=job.idea,
        mode=job.mode,
        stage=job.stage,
        status=job.status,
        error_message=job.error_message,
        result=job.result or {},
        app_id=job.app_id,
    )


@router.post("", response_model=JobResponse, status_code=202, dependencies=[Depends(enforce_rate_limit)])
def create_job(req: JobCreateRequest, db: Session = Depends(get_db)):
    job = GenerationJob(
        idea=req.idea,
        mode=req.mode,
        options={
            "use_design_system": req.use_design_system,
            "figma_file_key": req.figma_file_key,
            "save": req.save,
        },
        result={},
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    run_generation_job.delay(job.id)
    return _job_response(job)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str, db: Session = Depends(get_db)):
    job = db.get(GenerationJob, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_response(job)
