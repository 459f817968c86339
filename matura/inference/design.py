from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

from matura.core.errors import MaturaError
from matura.inference.schema_inference import load_patterns
from matura.inference.types import DesignSpec, Intent
from matura.orchestration.chain import ProviderChain
from matura.providers.base import FunctionSpec
from matura.providers.figma import FigmaClient
from matura.utils.lenient_json import loads_lenient

log = logging.getLogger(__name__)

COLOR_KEYS = ("primary", "secondary", "accent", "background", "text")

DESIGN_FUNCTION = FunctionSpec(
    name="propose_design_system",
    description="Propose a visual design system for the app.",
    parameters={
        "type": "object",
        "properties": {
            "style": {"type": "string", "description": "e.g. modern, minimal, playful"},
            "mood": {"type": "string"},
            "colors": {
                "type": "object",
                "properties": {k: {"type": "string"} for k in COLOR_KEYS},
            },
            "typography": {
                "type": "object",
                "properties": {"heading": {"type": "string"}, "body": {"type": "string"}},
            },
            "component_hints": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["style", "colors"],
    },
)

DESIGN_SYSTEM_PROMPT = (
    "You are a UI designer working with Tailwind CSS and shadcn/ui. "
    "Choose an accessible palette (hex colours) and a style that matches the app."
)


def category_palette(category: str) -> Dict[str, str]:
    palettes = load_patterns()["palettes"]
    return dict(palettes.get(category) or palettes["utility"])


def fallback_design(intent: Intent) -> DesignSpec:
    return DesignSpec(
        style="modern",
        mood="clean",
        colors=category_palette(intent.category),
        typography={"heading": "Inter", "body": "Inter"},
        component_hints=("Card", "Table", "Dialog"),
        source="fallback",
    )


def _merge_figma_colors(colors: Dict[str, str], tokens: Dict[str, Any]) -> Dict[str, str]:
    merged = dict(colors)
    for key, value in zip(("primary", "secondary", "accent"), tokens.get("colors") or []):
        merged[key] = value
    return merged


def design_from_payload(data: Any, intent: Intent, source: str) -> DesignSpec:
    if isinstance(data, str):
        data = loads_lenient(data, default=None)
    if not isinstance(data, dict):
        raise ValueError("design payload is not an object")
    palette = category_palette(intent.category)
    raw_colors = data.get("colors") if isinstance(data.get("colors"), dict) else {}
    colors = {k: str(raw_colors.get(k) or palette[k]) for k in COLOR_KEYS}
    typography = data.get("typography") if isinstance(data.get("typography"), dict) else {}
    hints = data.get("component_hints") if isinstance(data.get("component_hints"), list) else []
    return DesignSpec(
        style=str(data.get("style") or "modern"),
        mood=str(data.get("mood") or "clean"),
        colors=colors,
        typography={str(k): str(v) for k, v in typography.items()},
        component_hints=tuple(str(h) for h in hints),
        source=source,
    )


class DesignSynthesizer:
    def __init__(
        self,
        chain: Optional[ProviderChain] = None,
        figma: Optional[FigmaClient] = None,
        request_id: str = "-",
    ):
        self.chain = chain
        self.figma = figma
        self.request_id = request_id

    async def synthesize(self, intent: Intent, figma_file_key: Optional[str] = None) -> Tuple[DesignSpec, List[str]]:
        """Design spec and the providers that actually contributed to it."""
        ctx = {"request_id": self.request_id, "stage": "DESIGN_SYNTHESIS"}
        providers: List[str] = []
        design = fallback_design(intent)

        if self.chain is not None and self.chain.available:
            prompt = (
                f"Category: {intent.category}\nPurpose: {intent.primary_purpose}\n"
                f"Features: {', '.join(intent.key_features)}"
            )
            try:
                response = await self.chain.structured(DESIGN_FUNCTION, DESIGN_SYSTEM_PROMPT, prompt)
                design = design_from_payload(response.data, intent, source=response.provider)
                providers.append(response.provider)
            except (MaturaError, ValueError) as e:
                log.warning("Design proposal failed, using category palette: %s", e, extra=ctx)

        if self.figma is not None and figma_file_key:
            try:
                tokens = await self.figma.fetch_design_tokens(figma_file_key)
                design = DesignSpec(
                    style=design.style,
                    mood=design.mood,
                    colors=_merge_figma_colors(design.colors, tokens),
                    typography=({"heading": tokens["fonts"][0], "body": tokens["fonts"][-1]}
                                if tokens.get("fonts") else design.typography),
                    component_hints=design.component_hints + tuple(tokens.get("components") or ()),
                    tokens=tokens,
                    source="figma",
                )
                providers.append(self.figma.name)
            except MaturaError as e:
                log.warning("Figma token extraction failed: %s", e, extra=ctx)

        return design, providers
