import logging
from typing import List
from matura.agents.base import AgentResult, BaseStageAgent, PipelineEnv
from matura.core.context import GenerationContext
from matura.core.errors import GenerationError
from matura.core.workflow import GenerationMode, GenerationStage
from matura.generators.component_gen.generator import CodeGenerator
from matura.generators.component_gen.utils import component_name
from matura.quality.scorer import score_component
from matura.repair.loop import repair_source

log = logging.getLogger(__name__)


class CodeGenerationAgent(BaseStageAgent):
    stage = GenerationStage.CODE_GENERATION

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        chain = None if ctx.mode == GenerationMode.TEMPLATE else env.chain("code", ctx)
        generator = CodeGenerator(chain, request_id=ctx.request_id, settings=env.settings)
        ctx.component_name = component_name(ctx.schema)
        try:
            component = await generator.generate(ctx.schema, ctx.intent, ctx.design, tier=ctx.mode.value)
        except GenerationError as e:
            if e.source:
                # contract violations go to self-repair
                ctx.source = e.source
                ctx.notes.append(f"generated source needed repair: {e.reason}")
                return AgentResult(
                    stage=self.stage,
                    ok=True,
                    message=f"Candidate source failed checks at {e.stage}",
                    providers=e.providers,
                )
            log.error("Code generation failed: %s", e.message, extra={"request_id": ctx.request_id, "stage": str(self.stage)})
            return AgentResult(stage=self.stage, ok=False, message=e.message)

        ctx.source = component.source
        ctx.review = component.review
        return AgentResult(
            stage=self.stage,
            ok=True,
            message=f"{component.component_name} generated ({component.tier})",
            providers=component.providers,
        )


class SelfRepairAgent(BaseStageAgent):
    stage = GenerationStage.SELF_REPAIR

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        used: List[str] = []
        regenerate = None
        if ctx.mode != GenerationMode.TEMPLATE:
            chain = env.chain("code", ctx)
            if chain.available:
                generator = CodeGenerator(chain, request_id=ctx.request_id, settings=env.settings)

                async def regenerate(previous: str, errors: List[str]) -> str:
                    output = await generator.regenerate(
                        ctx.schema, ctx.intent, ctx.design, previous, errors, tier=ctx.mode.value,
                    )
                    if output.provider not in used:
                        used.append(output.provider)
                    return output.content

        ctx.repair = await repair_source(
            ctx.source,
            table_name=ctx.schema.table_name,
            max_retries=env.settings.repair_max_retries,
            regenerate=regenerate,
            error_window=env.settings.repair_error_window,
            request_id=ctx.request_id,
        )
        ctx.source = ctx.repair.code
        if ctx.repair.success:
            message = f"Valid after {ctx.repair.attempts} repair attempt(s)"
        else:
            message = f"{len(ctx.repair.remaining_errors)} issue(s) remain"
        return AgentResult(stage=self.stage, ok=True, message=message, providers=used)


class QualityScoringAgent(BaseStageAgent):
    stage = GenerationStage.QUALITY_SCORING

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        ctx.scores = score_component(ctx.source, ctx.intent, ctx.design, table_name=ctx.schema.table_name)
        return AgentResult(stage=self.stage, ok=True, message=f"Overall {ctx.scores.overall}")
