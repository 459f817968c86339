"""HTTP tests for the /api surface with scripted providers."""
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError

from conftest import ScriptedAdapter, make_registry, no_sleep
from matura.api import deps
from matura.api.rate_limit import SlidingWindowRateLimiter
from matura.core.config import settings
from matura.core.engine import GenerationEngine
from matura.db.session import Base, engine as db_engine, get_db
from matura.generators.component_gen.render import render_component
from matura.inference.schema_inference import infer_from_keywords
from matura.main import app
from matura.store.table_store import TableStore

Base.metadata.create_all(db_engine)


def _client(gen_engine=None, limiter=None, store=None):
    store = store or TableStore()
    limiter = limiter or SlidingWindowRateLimiter(1000, 60)
    gen_engine = gen_engine or GenerationEngine(make_registry(), settings, sleep=no_sleep)
    app.dependency_overrides[deps.get_table_store] = lambda: store
    app.dependency_overrides[deps.get_rate_limiter] = lambda: limiter
    app.dependency_overrides[deps.get_engine] = lambda: gen_engine
    app.dependency_overrides[deps.get_provider_registry] = lambda: make_registry()
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def test_generate_template_app_is_saved_and_served():
    client = _client()
    r = client.post("/api/generate", json={"idea": "タスク管理アプリを作りたい", "mode": "template"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["status"] == "complete"
    assert body["app"]["table_name"] == "tasks"
    assert body["app"]["schema"]["table_name"] == "tasks"
    assert "/api/crud/tasks" in body["app"]["code"]
    assert body["metadata"]["saved"] is True
    assert body["metadata"]["quality_scores"]["overall"] >= 0

    saved = client.get(f"/api/apps/{body['app']['id']}")
    assert saved.status_code == 200
    assert saved.json()["generated_code"] == body["app"]["code"]
    assert saved.json()["name"] == "タスク管理アプリを作りたい"

    # the generated component's table now validates against its schema
    assert client.post("/api/crud/tasks", json={"description": "no title"}).status_code == 400
    created = client.post("/api/crud/tasks", json={"title": "ship it"})
    assert created.status_code == 201
    assert created.json()["data"]["status"] == "pending"


def test_generate_rejects_bad_input():
    client = _client()
    r = client.post("/api/generate", json={"idea": ""})
    assert r.status_code == 400
    assert "idea" in r.json()["error"]

    assert client.post("/api/generate", json={}).status_code == 400
    assert client.post("/api/generate", json={"idea": "todo", "mode": "turbo"}).status_code == 400


def test_generate_reports_persistence_failure():
    """A database outage still returns the generated app, marked unsaved."""
    session = MagicMock()
    session.commit.side_effect = SQLAlchemyError("database is locked")

    def broken_db():
        yield session

    client = _client()
    app.dependency_overrides[get_db] = broken_db
    r = client.post("/api/generate", json={"idea": "家計簿アプリ", "mode": "template"})
    assert r.status_code == 200
    body = r.json()
    assert body["metadata"]["saved"] is False
    assert "persistence_error" in body["metadata"]
    assert body["app"]["id"] is None
    assert body["app"]["code"]
    session.rollback.assert_called_once()


def test_generate_failure_carries_recovery_suggestion():
    failing = GenerationEngine(
        make_registry(ScriptedAdapter("openai", fail_all=True), ScriptedAdapter("gemini", fail_all=True)),
        settings, sleep=no_sleep,
    )
    client = _client(gen_engine=failing)
    r = client.post("/api/generate", json={"idea": "在庫管理アプリ", "mode": "quick", "save": False})
    assert r.status_code == 500
    body = r.json()
    assert body["error_category"] == "code"
    assert body["recovery_suggestion"]
    assert body["details"]["stage"] == "CODE_GENERATION"


def test_rate_limit_returns_retry_after():
    client = _client(limiter=SlidingWindowRateLimiter(2, 60))
    for _ in range(2):
        assert client.post("/api/infer-schema", json={"idea": "家計簿"}).status_code == 200
    r = client.post("/api/infer-schema", json={"idea": "家計簿"})
    assert r.status_code == 429
    assert int(r.headers["Retry-After"]) >= 1
    assert r.json()["error"] == "Rate limit exceeded"


def test_rotating_forwarded_for_does_not_reset_the_limit():
    client = _client(limiter=SlidingWindowRateLimiter(2, 60))
    codes = [
        client.post("/api/infer-schema", json={"idea": "家計簿"}, headers={"X-Forwarded-For": f"203.0.113.{n}"}).status_code
        for n in range(5)
    ]
    assert codes == [200, 200, 429, 429, 429]


def test_infer_schema_without_providers_uses_keywords():
    r = _client().post("/api/infer-schema", json={"idea": "家計簿アプリ"})
    body = r.json()
    assert body["schema"]["table_name"] == "budget_entries"
    assert body["fallback"] is True
    assert body["source"] == "keyword"


def test_quality_check():
    client = _client()
    schema = infer_from_keywords("task")
    good = client.post("/api/quality-check", json={"code": render_component(schema), "table_name": "tasks"})
    assert good.json()["valid"] is True

    bad = client.post("/api/quality-check", json={"code": "export default function X() { return null }"})
    body = bad.json()
    assert body["valid"] is False
    assert any(i["code"] == "crud-contract" for i in body["issues"])
    assert body["scores"]["production_ready"] is False


def test_crud_contract_endpoints():
    client = _client()
    created = client.post("/api/crud/notes", json={"title": "first"}).json()["data"]

    listed = client.get("/api/crud/notes").json()["data"]
    assert [r["id"] for r in listed] == [created["id"]]
    assert client.get(f"/api/crud/notes?id={created['id']}").json()["data"]["title"] == "first"

    updated = client.put(f"/api/crud/notes?id={created['id']}", json={"title": "second", "id": "x"})
    assert updated.status_code == 200
    assert updated.json()["data"]["id"] == created["id"]
    assert updated.json()["data"]["title"] == "second"

    assert client.put("/api/crud/notes", json={"title": "no id"}).status_code == 400
    assert client.delete("/api/crud/notes").status_code == 400
    assert client.get("/api/crud/notes?id=missing").status_code == 404
    assert client.delete("/api/crud/notes?id=missing").status_code == 404

    assert client.delete(f"/api/crud/notes?id={created['id']}").json() == {"success": True}
    assert client.get("/api/crud/notes").json()["data"] == []


def test_schema_export_and_import_endpoints():
    client = _client()
    r = client.post("/api/schema/books", json={"fields": [{"name": "Title", "type": "string", "required": True}]})
    assert r.status_code == 201
    assert r.json()["schema"]["fields"][0]["name"] == "title"
    assert client.get("/api/schema/books").status_code == 200
    assert client.post("/api/crud/books", json={}).status_code == 400

    imported = client.post("/api/import/books", json={"records": [{"title": "A"}, {"title": "B"}]})
    assert imported.json() == {"success": True, "imported": 2}

    csv_export = client.get("/api/export/books?format=csv")
    assert csv_export.headers["content-type"].startswith("text/csv")
    assert 'filename="books.csv"' in csv_export.headers["content-disposition"]
    assert csv_export.text.splitlines()[0].startswith("title,")
    assert len(client.get("/api/export/books").json()) == 2
    assert client.get("/api/export/books?format=xml").status_code == 400

    assert client.delete("/api/schema/books").json() == {"success": True}
    missing = client.get("/api/schema/books")
    assert missing.status_code == 404
    assert "books" in missing.json()["error"]


def test_apps_endpoints():
    client = _client()
    created = client.post("/api/apps", json={
        "user_idea": "読書記録アプリ",
        "generated_code": "export default function A() {}",
        "schema": {"table_name": "reading_log", "fields": []},
        "owner_id": "owner-apps-test",
    })
    assert created.status_code == 201
    app_id = created.json()["id"]
    assert created.json()["name"] == "読書記録アプリ"
    assert created.json()["schema"]["table_name"] == "reading_log"

    patched = client.patch(f"/api/apps/{app_id}", json={"status": "archived"})
    assert patched.json()["status"] == "archived"
    assert client.patch(f"/api/apps/{app_id}", json={"status": "gone"}).status_code == 400

    listed = client.get("/api/apps?owner_id=owner-apps-test&status=archived").json()
    assert listed["count"] == 1
    assert listed["apps"][0]["generated_code"] is None

    assert client.delete(f"/api/apps/{app_id}").json() == {"success": True}
    assert client.get(f"/api/apps/{app_id}").status_code == 404


def test_jobs_endpoints():
    client = _client()
    with patch("matura.api.routes_jobs.run_generation_job") as task:
        r = client.post("/api/jobs", json={"idea": "在庫管理アプリ", "mode": "template"})
    assert r.status_code == 202
    job = r.json()
    assert job["status"] == "QUEUED"
    assert job["stage"] == "VALIDATE_INPUT"
    task.delay.assert_called_once_with(job["id"])

    assert client.get(f"/api/jobs/{job['id']}").json()["idea"] == "在庫管理アプリ"
    assert client.get("/api/jobs/does-not-exist").status_code == 404


def test_health():
    body = _client().get("/api/health").json()
    assert body["status"] == "ok"
    assert set(body["providers"]) == {"openai", "gemini", "figma"}
    assert "usage" in body


def test_generate_does_not_take_over_another_apps_table():
    store = TableStore()
    client = _client(store=store)
    assert client.post("/api/schema/tasks", json={"fields": [
        {"name": "name", "type": "text", "required": True},
        {"name": "priority", "type": "number", "required": True},
    ]}).status_code == 201

    r = client.post("/api/generate", json={"idea": "タスク管理アプリを作りたい", "mode": "template", "save": False})
    body = r.json()
    assert body["app"]["table_name"] == "tasks_2"
    assert "/api/crud/tasks_2" in body["app"]["code"]

    # the first app's table still validates against its own schema
    assert client.post("/api/crud/tasks", json={"name": "a", "priority": 1}).status_code == 201
    assert client.post("/api/crud/tasks_2", json={"title": "b"}).status_code == 201
    assert [f["name"] for f in client.get("/api/schema/tasks").json()["schema"]["fields"]][:2] == ["name", "priority"]


def test_infer_schema_rejects_oversized_ideas():
    openai = ScriptedAdapter("openai")
    gen_engine = GenerationEngine(make_registry(openai), settings, sleep=no_sleep)
    r = _client(gen_engine=gen_engine).post(
        "/api/infer-schema", json={"idea": "x" * (settings.max_idea_length + 1)},
    )
    assert r.status_code == 400
    assert openai.calls == []
