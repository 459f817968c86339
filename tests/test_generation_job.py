"""Background job task, run inline against sqlite."""
from unittest.mock import patch

from conftest import ScriptedAdapter, make_registry
from matura.core.config import settings
from matura.core.workflow import GenerationStage
from matura.db.models import GeneratedApp, GenerationJob
from matura.tasks.jobs import run_generation_job


def _queue(db, idea: str, mode: str, save: bool = True) -> str:
    job = GenerationJob(idea=idea, mode=mode, options={"save": save}, result={})
    db.add(job)
    db.commit()
    return job.id


def test_job_runs_to_done_and_saves_app(db_session):
    job_id = _queue(db_session, "タスク管理アプリを作りたい", "template")
    with patch("matura.tasks.jobs.ProviderRegistry.from_settings", return_value=make_registry()):
        run_generation_job(job_id)

    db_session.expire_all()
    job = db_session.get(GenerationJob, job_id)
    assert job.status == "DONE"
    assert job.stage == GenerationStage.DONE
    assert job.result["status"] == "complete"
    assert job.result["app"]["table_name"] == "tasks"
    assert db_session.get(GeneratedApp, job.app_id).table_name == "tasks"


def test_job_without_save_keeps_result_only(db_session):
    job_id = _queue(db_session, "ブログを書く", "template", save=False)
    with patch("matura.tasks.jobs.ProviderRegistry.from_settings", return_value=make_registry()):
        run_generation_job(job_id)

    db_session.expire_all()
    job = db_session.get(GenerationJob, job_id)
    assert job.status == "DONE"
    assert job.app_id is None
    assert "/api/crud/blog_posts" in job.result["app"]["code"]


def test_job_failure_records_category(db_session):
    job_id = _queue(db_session, "在庫管理アプリ", "quick")
    registry = make_registry(ScriptedAdapter("openai", fail_all=True), ScriptedAdapter("gemini", fail_all=True))
    fast = settings.model_copy(update={"provider_max_attempts": 1, "provider_backoff_seconds": 0.0})
    with patch("matura.tasks.jobs.ProviderRegistry.from_settings", return_value=registry), \
            patch("matura.tasks.jobs.settings", fast):
        run_generation_job(job_id)

    db_session.expire_all()
    job = db_session.get(GenerationJob, job_id)
    assert job.status == "FAILED"
    assert job.stage == GenerationStage.FAILED
    assert job.result["error_category"] == "code"
    assert job.error_message


def test_missing_job_is_ignored(db_session):
    run_generation_job("no-such-job")
