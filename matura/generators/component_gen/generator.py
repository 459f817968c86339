"""Orchestrator for component generation."""
import logging
import re
from typing import List, Optional

from matura.core.config import Settings, settings as default_settings
from matura.core.errors import GenerationError, MaturaError
from matura.generators.component_gen.contract import check_crud_contract, has_default_export, unbalanced_delimiter
from matura.generators.component_gen.prompts import (
    CODE_SYSTEM_PROMPT,
    COMPLETE_APP_FUNCTION,
    COMPONENT_FUNCTION,
    REVIEW_FUNCTION,
    base_context,
    pass_prompt,
    regenerate_prompt,
    review_prompt,
)
from matura.generators.component_gen.render import render_component
from matura.generators.component_gen.types import GeneratedComponent, PassOutput
from matura.generators.component_gen.utils import component_name
from matura.inference.types import AppSchema, DesignSpec, Intent
from matura.orchestration.chain import ProviderChain
from matura.providers.base import CallOptions

log = logging.getLogger(__name__)

TIERS = ("quick", "advanced", "premium", "template")
PLANNING_PASSES = (
    ("requirements", "analytical"),
    ("architecture", "reasoning"),
    ("design", "creative"),
)

_CODE_BLOCK_RE = re.compile(r"```(?:tsx|typescript|ts|jsx|javascript|js)?\s*\n([\s\S]*?)```")


def extract_code(text: str) -> str:
    """Pull component source out of a fenced block when the model wrapped it."""
    m = _CODE_BLOCK_RE.search(text or "")
    return (m.group(1) if m else (text or "")).strip() + "\n"


def check_output(source: str, schema: AppSchema, stage: str) -> str:
    """Raise GenerationError (carrying the candidate) if source breaks the output contract."""
    if not source.strip():
        raise GenerationError(stage, "provider returned empty source")
    problems = []
    if not has_default_export(source):
        problems.append("missing default export")
    imbalance = unbalanced_delimiter(source)
    if imbalance:
        problems.append(imbalance)
    problems.extend(check_crud_contract(source, schema.table_name))
    if problems:
        raise GenerationError(stage, "; ".join(problems), source=source)
    return source


class CodeGenerator:
    def __init__(self, chain: Optional[ProviderChain] = None, request_id: str = "-", settings: Settings = default_settings):
        self.chain = chain
        self.request_id = request_id
        self.settings = settings

    def _ctx(self, stage: str) -> dict:
        return {"request_id": self.request_id, "stage": stage}

    def _options(self, tier: str) -> CallOptions:
        return CallOptions(timeout=self.settings.timeout_for(tier))

    def _require_chain(self, stage: str) -> ProviderChain:
        if self.chain is None or not self.chain.available:
            raise GenerationError(stage, "no code provider configured")
        return self.chain

    async def _implementation(self, prompt: str, tier: str, stage: str) -> PassOutput:
        chain = self._require_chain(stage)
        try:
            response = await chain.structured(COMPONENT_FUNCTION, CODE_SYSTEM_PROMPT, prompt, self._options(tier))
        except MaturaError as e:
            raise GenerationError(stage, e.message) from e
        return PassOutput(
            name=stage,
            content=extract_code(str(response.data.get("component_code", ""))),
            provider=response.provider,
            tokens=response.tokens.total,
        )

    async def _quick(self, schema: AppSchema, intent: Intent, style: Optional[DesignSpec]) -> GeneratedComponent:
        chain = self._require_chain("quick")
        prompt = "\n\n".join(base_context(schema, intent, style) + ["Write the complete component now."])
        try:
            response = await chain.structured(COMPLETE_APP_FUNCTION, CODE_SYSTEM_PROMPT, prompt, self._options("quick"))
        except MaturaError as e:
            raise GenerationError("quick", e.message) from e
        source = extract_code(str(response.data.get("component_code", "")))
        returned_table = str(response.data.get("table_name", ""))
        if returned_table and returned_table != schema.table_name:
            log.warning(
                "Provider renamed table %s -> %s, keeping inferred name",
                schema.table_name, returned_table, extra=self._ctx("quick"),
            )
        output = PassOutput("quick", source, response.provider, response.tokens.total)
        return GeneratedComponent(source=source, component_name=component_name(schema), tier="quick", passes=[output])

    async def _multi_pass(self, schema: AppSchema, intent: Intent, style: Optional[DesignSpec], tier: str) -> GeneratedComponent:
        chain = self._require_chain("requirements")
        context = base_context(schema, intent, style)
        passes: List[PassOutput] = []
        for pass_name, mode in PLANNING_PASSES:
            prompt = pass_prompt(pass_name, context, [p.content for p in passes])
            try:
                response = await chain.free_text(prompt, mode=mode, options=self._options(tier))
            except MaturaError as e:
                raise GenerationError(pass_name, e.message) from e
            passes.append(PassOutput(pass_name, str(response.data), response.provider, response.tokens.total))
            log.info("Pass %s done via %s", pass_name, response.provider, extra=self._ctx(pass_name))

        impl = await self._implementation(
            pass_prompt("implementation", context, [p.content for p in passes]), tier, "implementation",
        )
        passes.append(impl)
        return GeneratedComponent(source=impl.content, component_name=component_name(schema), tier=tier, passes=passes)

    async def _review(self, component: GeneratedComponent, schema: AppSchema, intent: Intent, style: Optional[DesignSpec]) -> None:
        """Premium quality-review pass. A failed review keeps the reviewed source."""
        chain = self._require_chain("review")
        prompt = review_prompt(base_context(schema, intent, style), component.source)
        try:
            response = await chain.structured(REVIEW_FUNCTION, CODE_SYSTEM_PROMPT, prompt, self._options("premium"))
        except MaturaError as e:
            log.warning("Quality review failed: %s", e, extra=self._ctx("review"))
            return
        data = response.data
        component.review = {"score": data.get("score"), "issues": list(data.get("issues") or [])}
        component.passes.append(PassOutput("review", str(component.review), response.provider, response.tokens.total))
        improved = data.get("improved_code")
        if improved:
            candidate = extract_code(str(improved))
            try:
                component.source = check_output(candidate, schema, "review")
            except GenerationError as e:
                log.info("Discarding reviewed code: %s", e.message, extra=self._ctx("review"))

    async def generate(
        self,
        schema: AppSchema,
        intent: Intent,
        style: Optional[DesignSpec] = None,
        tier: str = "advanced",
    ) -> GeneratedComponent:
        if tier not in TIERS:
            raise GenerationError("setup", f"unknown tier '{tier}'")

        if tier == "template":
            source = render_component(schema, style, title=intent.primary_purpose)
            return GeneratedComponent(source=source, component_name=component_name(schema), tier=tier)

        if tier == "quick":
            component = await self._quick(schema, intent, style)
        else:
            component = await self._multi_pass(schema, intent, style, tier)

        final_stage = component.passes[-1].name
        try:
            check_output(component.source, schema, final_stage)
        except GenerationError as e:
            raise GenerationError(e.stage, e.reason, source=e.source, providers=component.providers) from e

        if tier == "premium":
            await self._review(component, schema, intent, style)
        return component

    async def generate_component(
        self,
        schema: AppSchema,
        intent: Intent,
        style: Optional[DesignSpec] = None,
        tier: str = "advanced",
    ) -> str:
        component = await self.generate(schema, intent, style, tier)
        return component.source

    async def regenerate(
        self,
        schema: AppSchema,
        intent: Intent,
        style: Optional[DesignSpec],
        previous_source: str,
        recent_errors: List[str],
        tier: str = "advanced",
    ) -> PassOutput:
        """One implementation pass that sees the recent validation errors."""
        prompt = regenerate_prompt(base_context(schema, intent, style), previous_source, recent_errors)
        return await self._implementation(prompt, tier, "regenerate")
