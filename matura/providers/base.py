"""
Base adapter interface for LLM providers (OpenAI, Gemini).

Adapters make exactly one HTTP call per invocation. Retries, backoff and
fallback across providers live in ``matura.orchestration.chain``.
"""
from __future__ import annotations
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from matura.core.errors import ProviderError, ProviderTimeoutError

log = logging.getLogger(__name__)

MODE_TEMPERATURE = {
    "creative": 0.9,
    "analytical": 0.3,
    "reasoning": 0.2,
    "technical": 0.1,
}

MODE_SYSTEM_PROMPT = {
    "creative": "You are a creative product designer. Propose original, user-friendly ideas.",
    "analytical": "You are a precise analyst. Answer with structured, factual reasoning.",
    "reasoning": "Think step by step and state your conclusion clearly.",
    "technical": "You are a senior TypeScript and React engineer. Answer with exact, working code.",
}


@dataclass(frozen=True)
class FunctionSpec:
    """A named function the provider must answer through."""
    name: str
    description: str
    parameters: Dict[str, Any]

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required", []))


@dataclass
class CallOptions:
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout: Optional[float] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(frozen=True)
class ResponseQuality:
    confidence: float
    reasoning: str = ""


@dataclass
class ProviderResponse:
    """Standardized result from any provider."""
    success: bool
    data: Any
    provider: str
    model: str
    tokens: TokenUsage = field(default_factory=TokenUsage)
    quality: ResponseQuality = field(default_factory=lambda: ResponseQuality(confidence=0.0))
    processing_time: float = 0.0


class UsageMeter:
    """Process-wide token counters per provider.

    The only state shared between concurrent requests.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._usage: Dict[str, Dict[str, int]] = {}

    def record(self, provider: str, tokens: TokenUsage) -> None:
        with self._lock:
            current = self._usage.setdefault(provider, {"prompt": 0, "completion": 0, "total": 0, "calls": 0})
            current["prompt"] += tokens.prompt
            current["completion"] += tokens.completion
            current["total"] += tokens.total
            current["calls"] += 1

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        with self._lock:
            return {name: dict(values) for name, values in self._usage.items()}

    def reset(self) -> None:
        with self._lock:
            self._usage.clear()


usage_meter = UsageMeter()


def assess_quality(data: Any, required: List[str]) -> ResponseQuality:
    """Heuristic confidence for a structured payload."""
    if not isinstance(data, dict):
        return ResponseQuality(confidence=0.5, reasoning="non-object payload")

    confidence = 0.8
    notes = []
    missing = [key for key in required if key not in data]
    if missing:
        confidence -= 0.2
        notes.append(f"missing {', '.join(missing)}")
    else:
        confidence += 0.1
        notes.append("all required fields present")

    size = len(str(data))
    if size > 500:
        confidence += 0.05
    if size > 1000:
        confidence += 0.05
    if len(data) >= 5:
        confidence += 0.1
    if len(data) >= 8:
        confidence += 0.05

    return ResponseQuality(confidence=max(0.0, min(1.0, confidence)), reasoning="; ".join(notes))


class ProviderAdapter(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses implement the two request shapes for one vendor API.
    The shared HTTP helper maps transport failures onto ``ProviderError``
    so callers only ever see the error taxonomy.
    """

    name: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        timeout: float = 60.0,
        meter: Optional[UsageMeter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.meter = meter or usage_meter
        self._transport = transport

    @abstractmethod
    async def execute_structured_call(
        self,
        function_spec: FunctionSpec,
        system_prompt: str,
        user_prompt: str,
        options: Optional[CallOptions] = None,
    ) -> ProviderResponse:
        """
        Request output that conforms to ``function_spec``.

        Returns:
            ProviderResponse whose ``data`` is the decoded argument object

        Raises:
            ProviderError: unreachable backend, non-2xx, non-conforming
                payload, or truncated output
        """

    @abstractmethod
    async def generate_free_text(
        self,
        prompt: str,
        mode: str = "creative",
        options: Optional[CallOptions] = None,
    ) -> ProviderResponse:
        """Unstructured completion; ``mode`` selects temperature and system prompt."""

    def _headers(self) -> dict:
        return {"Content-Type": "application/json"}

    def _resolve(self, options: Optional[CallOptions]) -> CallOptions:
        options = options or CallOptions()
        return CallOptions(
            temperature=self.temperature if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or self.max_tokens,
            timeout=options.timeout or self.timeout,
            model=options.model or self.model,
        )

    async def _post_json(self, url: str, payload: dict, timeout: float, params: Optional[dict] = None) -> dict:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                r = await client.post(url, headers=self._headers(), json=payload, params=params)
                r.raise_for_status()
                return r.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, timeout) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name,
                f"HTTP {e.response.status_code}",
                kind="http",
                details=e.response.text[:500],
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(self.name, f"request failed: {e}", kind="unreachable") from e
        except ValueError as e:
            raise ProviderError(self.name, "response body is not JSON", kind="malformed") from e

    def _check_required(self, function_spec: FunctionSpec, data: Any) -> None:
        if not isinstance(data, dict):
            raise ProviderError(self.name, f"{function_spec.name} returned a non-object payload", kind="malformed")
        missing = [key for key in function_spec.required if key not in data]
        if missing:
            raise ProviderError(
                self.name,
                f"{function_spec.name} payload missing required keys: {', '.join(missing)}",
                kind="malformed",
            )

    def _finish(self, data: Any, tokens: TokenUsage, model: str, started: float, required: List[str]) -> ProviderResponse:
        self.meter.record(self.name, tokens)
        elapsed = time.monotonic() - started
        log.info("%s call ok model=%s tokens=%d in %.2fs", self.name, model, tokens.total, elapsed)
        return ProviderResponse(
            success=True,
            data=data,
            provider=self.name,
            model=model,
            tokens=tokens,
            quality=assess_quality(data, required),
            processing_time=elapsed,
        )
