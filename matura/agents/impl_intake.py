import logging
from matura.agents.base import AgentResult, BaseStageAgent, PipelineEnv
from matura.core.context import GenerationContext
from matura.core.errors import ValidationError
from matura.core.workflow import GenerationMode, GenerationStage
from matura.inference.intent import IntentAnalyzer, fallback_intent

log = logging.getLogger(__name__)


class ValidateInputAgent(BaseStageAgent):
    stage = GenerationStage.VALIDATE_INPUT

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        idea = (ctx.idea or "").strip()
        if not idea:
            raise ValidationError("idea must not be empty")
        if len(idea) > env.settings.max_idea_length:
            raise ValidationError(f"idea is longer than {env.settings.max_idea_length} characters")
        ctx.idea = idea
        return AgentResult(stage=self.stage, ok=True, message="Input accepted")


class IdeaEnhancementAgent(BaseStageAgent):
    stage = GenerationStage.IDEA_ENHANCEMENT

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        if ctx.mode in (GenerationMode.QUICK, GenerationMode.TEMPLATE):
            ctx.intent = fallback_intent(ctx.idea)
            return AgentResult(stage=self.stage, ok=True, message="Keyword intent", skipped=True)

        analyzer = IntentAnalyzer(env.chain("idea", ctx), request_id=ctx.request_id)
        ctx.intent, response = await analyzer.analyze(ctx.idea)
        if response is None:
            return AgentResult(stage=self.stage, ok=True, message="Intent fell back to keywords")
        return AgentResult(
            stage=self.stage,
            ok=True,
            message=f"Intent: {ctx.intent.category}/{ctx.intent.complexity}",
            providers=[response.provider],
        )
