from __future__ import annotations
import logging
import re
from typing import Any, Optional, Tuple

from matura.core.errors import MaturaError
from matura.core.logging import summarize
from matura.inference.schema_inference import keyword_hit, load_patterns
from matura.inference.types import CATEGORIES, COMPLEXITY_TIERS, Intent
from matura.orchestration.chain import ProviderChain
from matura.providers.base import FunctionSpec, ProviderResponse
from matura.utils.lenient_json import loads_lenient

log = logging.getLogger(__name__)

INTENT_FUNCTION = FunctionSpec(
    name="analyze_app_intent",
    description="Analyse an app idea and describe what should be built.",
    parameters={
        "type": "object",
        "properties": {
            "category": {"type": "string", "enum": list(CATEGORIES)},
            "primary_purpose": {"type": "string"},
            "target_users": {"type": "array", "items": {"type": "string"}},
            "key_features": {"type": "array", "items": {"type": "string"}},
            "complexity": {"type": "string", "enum": list(COMPLEXITY_TIERS)},
            "enhanced_description": {"type": "string"},
        },
        "required": ["category", "primary_purpose", "key_features"],
    },
)

INTENT_SYSTEM_PROMPT = (
    "You are a product strategist. Expand the user's app idea into a clear, "
    "buildable single-screen CRUD application."
)

_FEATURE_SPLIT_RE = re.compile(r"[、,，・/]|\band\b|と")


def infer_category(idea: str) -> str:
    for category, keywords in load_patterns()["categories"].items():
        if keyword_hit(idea, keywords):
            return category
    return "productivity"


def infer_complexity(idea: str) -> str:
    features = [p for p in _FEATURE_SPLIT_RE.split(idea) if p.strip()]
    if len(idea) > 200 or len(features) >= 5:
        return "complex"
    if len(idea) > 60 or len(features) >= 3:
        return "moderate"
    return "simple"


def fallback_intent(idea: str) -> Intent:
    """Deterministic intent from keywords only."""
    idea = idea.strip()
    features = tuple(p.strip() for p in _FEATURE_SPLIT_RE.split(idea) if p.strip())[:6]
    return Intent(
        category=infer_category(idea),
        primary_purpose=summarize(idea, 120),
        target_users=("general users",),
        key_features=features or (idea,),
        complexity=infer_complexity(idea),
        enhanced_description=idea,
        source="fallback",
    )


def _as_tuple(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v)
    return ()


def intent_from_payload(data: Any, idea: str) -> Intent:
    if isinstance(data, str):
        data = loads_lenient(data, default=None)
    if not isinstance(data, dict) or not data.get("primary_purpose"):
        raise ValueError("intent payload missing primary_purpose")
    category = str(data.get("category", "")).lower()
    complexity = str(data.get("complexity", "")).lower()
    return Intent(
        category=category if category in CATEGORIES else infer_category(idea),
        primary_purpose=str(data["primary_purpose"]),
        target_users=_as_tuple(data.get("target_users")) or ("general users",),
        key_features=_as_tuple(data.get("key_features")),
        complexity=complexity if complexity in COMPLEXITY_TIERS else infer_complexity(idea),
        enhanced_description=str(data.get("enhanced_description") or idea),
        source="ai",
    )


class IntentAnalyzer:
    def __init__(self, chain: Optional[ProviderChain] = None, request_id: str = "-"):
        self.chain = chain
        self.request_id = request_id

    async def analyze(self, idea: str) -> Tuple[Intent, Optional[ProviderResponse]]:
        if self.chain is not None and self.chain.available:
            try:
                response = await self.chain.structured(INTENT_FUNCTION, INTENT_SYSTEM_PROMPT, idea)
                return intent_from_payload(response.data, idea), response
            except (MaturaError, ValueError) as e:
                log.warning(
                    "Intent analysis failed, using keyword intent: %s", e,
                    extra={"request_id": self.request_id, "stage": "IDEA_ENHANCEMENT"},
                )
        return fallback_intent(idea), None
