"""Retry and fallback across the providers configured for one pipeline role."""
from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from matura.core.errors import ProviderError, ProviderExhaustedError
from matura.providers.base import CallOptions, FunctionSpec, ProviderAdapter, ProviderResponse

log = logging.getLogger(__name__)

# Same token budget would truncate again, so move straight to the next provider.
NON_RETRYABLE_KINDS = {"truncated"}


@dataclass
class CallStats:
    """Token totals and response confidences for one request."""
    tokens: Dict[str, int] = field(default_factory=dict)
    confidences: List[float] = field(default_factory=list)

    def record(self, response: ProviderResponse) -> None:
        self.tokens[response.provider] = self.tokens.get(response.provider, 0) + response.tokens.total
        self.confidences.append(response.quality.confidence)

    @property
    def confidence(self) -> Optional[float]:
        if not self.confidences:
            return None
        return round(sum(self.confidences) / len(self.confidences), 3)


class ProviderChain:
    def __init__(
        self,
        role: str,
        adapters: List[ProviderAdapter],
        max_attempts: int = 2,
        backoff: float = 1.0,
        backoff_max: float = 8.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        request_id: str = "-",
        stats: Optional[CallStats] = None,
    ):
        self.role = role
        self.adapters = adapters
        self.max_attempts = max(1, max_attempts)
        self.backoff = backoff
        self.backoff_max = backoff_max
        self._sleep = sleep
        self.request_id = request_id
        self.stats = stats

    @property
    def available(self) -> bool:
        return bool(self.adapters)

    def _delay(self, attempt: int) -> float:
        return min(self.backoff * (2 ** (attempt - 1)), self.backoff_max)

    async def _run(self, call: Callable[[ProviderAdapter], Awaitable[ProviderResponse]]) -> ProviderResponse:
        attempts: List[str] = []
        for adapter in self.adapters:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    response = await call(adapter)
                    if self.stats is not None:
                        self.stats.record(response)
                    return response
                except ProviderError as e:
                    attempts.append(f"{adapter.name}#{attempt}: {e.message}")
                    log.warning(
                        "%s attempt %d/%d failed (%s): %s",
                        adapter.name, attempt, self.max_attempts, e.kind, e.message,
                        extra={"request_id": self.request_id, "stage": self.role},
                    )
                    if e.kind in NON_RETRYABLE_KINDS or attempt == self.max_attempts:
                        break
                    await self._sleep(self._delay(attempt))
            log.info(
                "Falling back from %s", adapter.name,
                extra={"request_id": self.request_id, "stage": self.role},
            )
        raise ProviderExhaustedError(self.role, attempts)

    async def structured(
        self,
        function_spec: FunctionSpec,
        system_prompt: str,
        user_prompt: str,
        options: Optional[CallOptions] = None,
    ) -> ProviderResponse:
        return await self._run(
            lambda a: a.execute_structured_call(function_spec, system_prompt, user_prompt, options)
        )

    async def free_text(self, prompt: str, mode: str = "creative", options: Optional[CallOptions] = None) -> ProviderResponse:
        return await self._run(lambda a: a.generate_free_text(prompt, mode, options))
