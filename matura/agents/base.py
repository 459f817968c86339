import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from matura.core.config import Settings
from matura.core.context import GenerationContext
from matura.core.workflow import GenerationStage
from matura.orchestration.chain import ProviderChain
from matura.providers.registry import ProviderRegistry


@dataclass
class AgentResult:
    stage: GenerationStage
    ok: bool
    message: str
    providers: List[str] = field(default_factory=list)
    skipped: bool = False


@dataclass
class PipelineEnv:
    """What stage agents may use besides the request context."""
    providers: ProviderRegistry
    settings: Settings
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def chain(self, role: str, ctx: Optional[GenerationContext] = None) -> ProviderChain:
        return ProviderChain(
            role,
            self.providers.chain(role),
            max_attempts=self.settings.provider_max_attempts,
            backoff=self.settings.provider_backoff_seconds,
            backoff_max=self.settings.provider_backoff_max_seconds,
            sleep=self.sleep,
            request_id=ctx.request_id if ctx is not None else "-",
            stats=ctx.stats if ctx is not None else None,
        )


class BaseStageAgent:
    stage: GenerationStage

    async def run(self, ctx: GenerationContext, env: PipelineEnv) -> AgentResult:
        raise NotImplementedError
