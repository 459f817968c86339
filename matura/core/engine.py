from __future__ import annotations
import asyncio
import logging
import time
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, Callable, Optional

from matura.agents.base import AgentResult, PipelineEnv
from matura.agents.registry import AgentRegistry
from matura.core.config import Settings, settings as default_settings
from matura.core.context import GenerateOptions, GenerationContext, GenerationResult
from matura.core.errors import PipelineFailedError, ValidationError
from matura.core.logging import summarize
from matura.core.workflow import PIPELINE, GenerationMode, GenerationStage
from matura.generators.component_gen.writer import write_generated_app
from matura.providers.registry import ProviderRegistry
from matura.quality.scorer import score_component
from matura.repair.loop import RepairResult

log = logging.getLogger(__name__)

StageCallback = Callable[[GenerationStage], None]

ERROR_CATEGORIES = {
    GenerationStage.IDEA_ENHANCEMENT: "idea",
    GenerationStage.SCHEMA_INFERENCE: "schema",
    GenerationStage.DESIGN_SYNTHESIS: "design",
    GenerationStage.CODE_GENERATION: "code",
    GenerationStage.SELF_REPAIR: "validation",
}

RECOVERY_SUGGESTIONS = {
    "idea": "Retry in quick mode, which skips AI idea enhancement.",
    "schema": "Retry with a more specific description of the data to store.",
    "design": "Retry without the design system (use_design_system=false).",
    "code": "Retry in template mode, or configure an alternate code provider.",
    "validation": "Retry in template mode for a deterministic component.",
    "unknown": "Retry later; if the problem persists check provider status at /api/health.",
}

# Stages whose failure degrades the result instead of failing the request.
DEGRADABLE = {GenerationStage.SELF_REPAIR, GenerationStage.QUALITY_SCORING}


class GenerationEngine:
    def __init__(
        self,
        providers: ProviderRegistry,
        settings: Settings = default_settings,
        registry: Optional[AgentRegistry] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.env = PipelineEnv(providers=providers, settings=settings, sleep=sleep)
        self.settings = settings
        self.registry = registry or AgentRegistry.default()

    def _fail(self, ctx: GenerationContext, stage: GenerationStage, message: str) -> PipelineFailedError:
        category = ERROR_CATEGORIES.get(stage, "unknown")
        log.error(
            "Generation failed: %s (idea=%r)", message, summarize(ctx.idea),
            extra={"request_id": ctx.request_id, "stage": str(stage.value)},
        )
        return PipelineFailedError(
            stage=stage.value,
            message=message,
            category=category,
            recovery_suggestion=RECOVERY_SUGGESTIONS[category],
        )

    def _degrade(self, ctx: GenerationContext, stage: GenerationStage, message: str) -> None:
        if stage == GenerationStage.SELF_REPAIR:
            ctx.repair = RepairResult(success=False, remaining_errors=[message], code=ctx.source or "")
        elif stage == GenerationStage.QUALITY_SCORING:
            ctx.scores = score_component(ctx.source or "", ctx.intent, ctx.design, issues=[])
        ctx.notes.append(f"{stage.value}: {message}")

    async def _run_stage(self, ctx: GenerationContext, stage: GenerationStage) -> AgentResult:
        agent = self.registry.get(stage)
        try:
            return await agent.run(ctx, self.env)
        except ValidationError:
            raise
        except Exception as e:
            log.exception(
                "Stage raised", extra={"request_id": ctx.request_id, "stage": stage.value},
            )
            return AgentResult(stage=stage, ok=False, message=str(e) or type(e).__name__)

    def _write_output(self, ctx: GenerationContext, result_meta: dict) -> None:
        try:
            path = write_generated_app(
                Path(self.settings.generated_dir),
                ctx.request_id,
                ctx.component_name,
                ctx.source,
                result_meta,
            )
            ctx.output_path = str(path)
        except OSError as e:
            log.warning(
                "Could not write generated files: %s", e,
                extra={"request_id": ctx.request_id, "stage": "DONE"},
            )

    async def run(
        self,
        idea: str,
        mode: GenerationMode | str = GenerationMode.ADVANCED,
        options: Optional[GenerateOptions] = None,
        on_stage: Optional[StageCallback] = None,
        request_id: Optional[str] = None,
    ) -> GenerationResult:
        try:
            mode = GenerationMode(mode)
        except ValueError as e:
            raise ValidationError(f"unknown mode '{mode}'") from e

        ctx = GenerationContext(
            request_id=request_id or str(uuid.uuid4()),
            idea=idea or "",
            mode=mode,
            options=options or GenerateOptions(),
        )
        started = time.monotonic()

        for stage in PIPELINE:
            if on_stage is not None:
                on_stage(stage)
            log.info("Running stage", extra={"request_id": ctx.request_id, "stage": stage.value})

            result = await self._run_stage(ctx, stage)

            if result.providers:
                ctx.stage_providers[stage.value] = list(result.providers)
            if result.skipped:
                ctx.skipped.append(stage.value)

            if not result.ok:
                if stage in DEGRADABLE:
                    self._degrade(ctx, stage, result.message)
                    continue
                if on_stage is not None:
                    on_stage(GenerationStage.FAILED)
                raise self._fail(ctx, stage, result.message)

        if on_stage is not None:
            on_stage(GenerationStage.DONE)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        confidence = ctx.stats.confidence
        status = "complete" if ctx.repair is not None and ctx.repair.success else "partial"
        validation = ctx.repair.to_dict() if ctx.repair is not None else {"success": False, "remaining_errors": []}
        if ctx.notes:
            validation["notes"] = list(ctx.notes)

        result = GenerationResult(
            request_id=ctx.request_id,
            idea=ctx.idea,
            mode=mode.value,
            status=status,
            intent=ctx.intent,
            schema=ctx.schema,
            design=ctx.design,
            code=ctx.source,
            component_name=ctx.component_name,
            scores=ctx.scores,
            providers=ctx.providers,
            stage_providers=dict(ctx.stage_providers),
            tokens=dict(ctx.stats.tokens),
            validation=validation,
            confidence=confidence if confidence is not None else 0.5,
            processing_time_ms=elapsed_ms,
            skipped_stages=list(ctx.skipped),
        )

        if ctx.options.write_files:
            self._write_output(ctx, {**result.to_metadata(), "idea": ctx.idea, "app": {
                "table_name": ctx.schema.table_name, "schema": ctx.schema.to_dict(),
            }})
            if ctx.output_path:
                result = replace(result, output_path=ctx.output_path)

        log.info(
            "Generation %s in %dms via %s", status, elapsed_ms, ", ".join(result.providers) or "templates",
            extra={"request_id": ctx.request_id, "stage": "DONE"},
        )
        return result
