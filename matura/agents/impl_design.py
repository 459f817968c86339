import logging
from typing import Dict, Optional
from matura.agents.base import AgentResult, BaseStageAgent, PipelineEnv
from matura.core.context import GenerationContext
from matura.core.workflow import GenerationMode, GenerationStage
from matura.inference.design import DesignSynthesizer, fallback_design
from matura.inference.naming import disambiguate_table_name
from matura.inference.schema_inference import SchemaInferenceEngine
from matura.inference.types import AppSchema

log = logging.getLogger(__name__)


def claim_table_name(schema: AppSchema, taken: Dict[str, Optional[tuple]], request_id: str = "-") -> AppSchema:
    """Keep the inferred name unless another app already owns that table with a different shape."""
    name = schema.table_name
    if name not in taken or taken[name] == schema.signature:
        return schema
    conflicting = [t for t, signature in taken.items() if signature != schema.signature]
    renamed = disambiguate_table_name(name, conflicting)
    log.info(
        "Table %s is taken by another schema, using %s", name, renamed,
        extra={"request_id": request_id, "stage": "SCHEMA_INFERENCE"},
    )
    return schema.with_table_name(renamed)


class SchemaInferenceAgent(BaseStageAgent):
    stage = GenerationStage.SCHEMA_INFERENCE

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        chain = None if ctx.mode == GenerationMode.TEMPLATE else env.chain("schema", ctx)
        engine = SchemaInferenceEngine(chain, request_id=ctx.request_id)
        ctx.schema, response = await engine.infer(ctx.idea, ctx.intent)
        ctx.schema = claim_table_name(ctx.schema, ctx.options.taken_tables, ctx.request_id)
        providers = [response.provider] if response is not None else []
        return AgentResult(
            stage=self.stage,
            ok=True,
            message=f"Table {ctx.schema.table_name} ({len(ctx.schema.fields)} fields, {ctx.schema.source})",
            providers=providers,
        )


class DesignSynthesisAgent(BaseStageAgent):
    stage = GenerationStage.DESIGN_SYNTHESIS

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        if ctx.mode in (GenerationMode.QUICK, GenerationMode.TEMPLATE) or not ctx.options.use_design_system:
            ctx.design = fallback_design(ctx.intent)
            return AgentResult(stage=self.stage, ok=True, message="Category palette", skipped=True)

        figma = env.providers.figma if ctx.mode == GenerationMode.PREMIUM else None
        synthesizer = DesignSynthesizer(env.chain("design", ctx), figma=figma, request_id=ctx.request_id)
        ctx.design, providers = await synthesizer.synthesize(ctx.intent, ctx.options.figma_file_key)
        if not providers:
            # reduced path: nothing contributed, palette only
            return AgentResult(stage=self.stage, ok=True, message="Design fell back to category palette", skipped=True)
        return AgentResult(stage=self.stage, ok=True, message=f"Design via {', '.join(providers)}", providers=providers)
