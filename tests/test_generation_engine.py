"""End-to-end tests for the generation pipeline with scripted providers."""
from pathlib import Path

import pytest

from conftest import ScriptedAdapter, make_registry, no_sleep
from matura.core.config import settings
from matura.core.context import GenerateOptions
from matura.core.engine import GenerationEngine
from matura.core.errors import PipelineFailedError, ValidationError
from matura.core.workflow import PIPELINE, GenerationStage
from matura.generators.component_gen.contract import check_crud_contract
from matura.generators.component_gen.prompts import COMPLETE_APP_FUNCTION, COMPONENT_FUNCTION
from matura.generators.component_gen.render import render_component
from matura.inference.design import DESIGN_FUNCTION
from matura.inference.intent import INTENT_FUNCTION
from matura.inference.schema_inference import SCHEMA_FUNCTION, schema_from_payload

BUDGET_SCHEMA = {
    "table_name": "budget_entries",
    "fields": [
        {"name": "amount", "type": "number", "required": True},
        {"name": "category", "type": "text", "required": True},
        {"name": "memo", "type": "textarea"},
    ],
}
BUDGET_CODE = render_component(schema_from_payload(BUDGET_SCHEMA))
BUDGET_INTENT = {
    "category": "finance",
    "primary_purpose": "Track household spending",
    "key_features": ["log expenses", "monthly totals"],
}


def _engine(*adapters):
    return GenerationEngine(make_registry(*adapters), settings, sleep=no_sleep)


@pytest.mark.asyncio
async def test_template_mode_builds_task_app_without_providers():
    stages = []
    result = await _engine().run("タスク管理アプリを作りたい", mode="template", on_stage=stages.append)

    assert result.schema.table_name == "tasks"
    assert {"title", "completed"} <= set(result.schema.field_names)
    assert "/api/crud/tasks" in result.code
    for verb in ("POST", "PUT", "DELETE"):
        assert f"method: '{verb}'" in result.code
    assert check_crud_contract(result.code, "tasks") == []
    assert result.status == "complete"
    assert result.providers == []
    assert stages == PIPELINE + [GenerationStage.DONE]
    assert "IDEA_ENHANCEMENT" in result.skipped_stages


@pytest.mark.asyncio
async def test_failed_design_provider_is_not_credited():
    """家計簿アプリ with the design provider down still yields code, attributed to openai only."""
    gemini = ScriptedAdapter("gemini", fail_all=True)
    openai = ScriptedAdapter("openai", structured={
        INTENT_FUNCTION.name: BUDGET_INTENT,
        SCHEMA_FUNCTION.name: BUDGET_SCHEMA,
        DESIGN_FUNCTION.name: {"style": "minimal", "colors": {"primary": "#0EA5E9"}},
        COMPONENT_FUNCTION.name: {"component_code": BUDGET_CODE},
    })

    result = await _engine(openai, gemini).run("家計簿アプリ", mode="advanced")

    assert result.code
    assert "/api/crud/budget_entries" in result.code
    assert "gemini" not in result.providers
    assert result.providers == ["openai"]
    assert result.stage_providers["DESIGN_SYNTHESIS"] == ["openai"]
    assert result.design.source == "openai"
    assert DESIGN_FUNCTION.name in gemini.calls
    assert result.status == "complete"
    assert set(result.tokens) == {"openai"}
    assert result.intent.category == "finance"


@pytest.mark.asyncio
async def test_design_outage_takes_reduced_path():
    openai = ScriptedAdapter("openai", structured={
        INTENT_FUNCTION.name: BUDGET_INTENT,
        SCHEMA_FUNCTION.name: BUDGET_SCHEMA,
        COMPONENT_FUNCTION.name: {"component_code": BUDGET_CODE},
    })
    result = await _engine(openai, ScriptedAdapter("gemini", fail_all=True)).run("家計簿アプリ")

    assert result.code
    assert result.design.source == "fallback"
    assert "DESIGN_SYNTHESIS" in result.skipped_stages
    assert "DESIGN_SYNTHESIS" not in result.stage_providers


@pytest.mark.asyncio
async def test_empty_idea_is_rejected_before_any_provider_call():
    openai = ScriptedAdapter("openai")
    stages = []
    with pytest.raises(ValidationError):
        await _engine(openai).run("", mode="advanced", on_stage=stages.append)
    assert openai.calls == []
    assert stages == [GenerationStage.VALIDATE_INPUT]


@pytest.mark.asyncio
async def test_unknown_mode_is_rejected():
    with pytest.raises(ValidationError):
        await _engine().run("todo", mode="turbo")


@pytest.mark.asyncio
async def test_code_generation_outage_fails_with_recovery_hint():
    stages = []
    engine = _engine(ScriptedAdapter("openai", fail_all=True), ScriptedAdapter("gemini", fail_all=True))
    with pytest.raises(PipelineFailedError) as exc:
        await engine.run("在庫管理アプリ", mode="quick", on_stage=stages.append)
    assert exc.value.stage == "CODE_GENERATION"
    assert exc.value.category == "code"
    assert "template" in exc.value.recovery_suggestion
    assert stages[-1] == GenerationStage.FAILED


@pytest.mark.asyncio
async def test_contract_violation_is_repaired_by_regeneration():
    """Quick output missing DELETE goes to self-repair, which regenerates once."""
    incomplete = BUDGET_CODE.replace("method: 'DELETE'", "method: 'POST'")
    openai = ScriptedAdapter("openai", structured={
        SCHEMA_FUNCTION.name: BUDGET_SCHEMA,
        COMPLETE_APP_FUNCTION.name: {"table_name": "budget_entries", "component_code": incomplete},
        COMPONENT_FUNCTION.name: {"component_code": BUDGET_CODE},
    })

    result = await _engine(openai).run("家計簿アプリ", mode="quick")

    assert result.status == "complete"
    assert result.code == BUDGET_CODE
    assert result.validation["regenerations"] == 1
    assert openai.calls.count(COMPONENT_FUNCTION.name) == 1


@pytest.mark.asyncio
async def test_unrepairable_code_is_a_partial_result():
    broken = "export default function X() { return null }"
    openai = ScriptedAdapter("openai", structured={
        SCHEMA_FUNCTION.name: BUDGET_SCHEMA,
        COMPLETE_APP_FUNCTION.name: {"table_name": "budget_entries", "component_code": broken},
        COMPONENT_FUNCTION.name: {"component_code": broken},
    })

    result = await _engine(openai).run("家計簿アプリ", mode="quick")

    assert result.status == "partial"
    assert result.code
    assert result.validation["remaining_errors"]
    assert openai.calls.count(COMPONENT_FUNCTION.name) <= settings.repair_max_retries
    assert result.scores.production_ready is False


@pytest.mark.asyncio
async def test_generated_files_are_written(tmp_path):
    engine = GenerationEngine(make_registry(), settings.model_copy(update={"generated_dir": str(tmp_path)}))
    result = await engine.run("ブログ", mode="template", options=GenerateOptions(write_files=True))

    path = Path(result.output_path)
    assert path.name == "BlogPostsApp.tsx"
    assert path.read_text(encoding="utf-8") == result.code
    assert (path.parent / "metadata.json").exists()


@pytest.mark.asyncio
async def test_table_owned_by_another_schema_gets_a_new_name():
    taken = {"tasks": (("name", "text", True), ("priority", "number", True))}
    result = await _engine().run(
        "タスク管理アプリを作りたい", mode="template", options=GenerateOptions(taken_tables=taken),
    )
    assert result.schema.table_name == "tasks_2"
    assert check_crud_contract(result.code, "tasks_2") == []
    assert result.status == "complete"


@pytest.mark.asyncio
async def test_table_with_the_same_schema_is_reused():
    first = await _engine().run("タスク管理アプリを作りたい", mode="template")
    signature = first.schema.signature

    again = await _engine().run(
        "タスク管理アプリを作りたい", mode="template", options=GenerateOptions(taken_tables={"tasks": signature}),
    )
    assert again.schema.table_name == "tasks"

    shifted = await _engine().run(
        "タスク管理アプリを作りたい", mode="template",
        options=GenerateOptions(taken_tables={"tasks": None, "tasks_2": signature}),
    )
    assert shifted.schema.table_name == "tasks_2"


class TimeoutRecordingAdapter(ScriptedAdapter):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.timeouts = {}

    async def execute_structured_call(self, function_spec, system_prompt, user_prompt, options=None):
        self.timeouts[function_spec.name] = options.timeout if options is not None else None
        return await super().execute_structured_call(function_spec, system_prompt, user_prompt, options)


@pytest.mark.asyncio
async def test_code_generation_uses_the_engine_timeouts():
    openai = TimeoutRecordingAdapter("openai", structured={
        SCHEMA_FUNCTION.name: BUDGET_SCHEMA,
        COMPLETE_APP_FUNCTION.name: {"table_name": "budget_entries", "component_code": BUDGET_CODE},
    })
    tuned = settings.model_copy(update={"quick_timeout_seconds": 7.0})
    engine = GenerationEngine(make_registry(openai), tuned, sleep=no_sleep)

    await engine.run("家計簿アプリ", mode="quick")

    assert openai.timeouts[COMPLETE_APP_FUNCTION.name] == 7.0
