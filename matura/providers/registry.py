from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from matura.core.config import Settings, settings
from matura.providers.base import ProviderAdapter
from matura.providers.figma import FigmaClient
from matura.providers.gemini import GeminiAdapter
from matura.providers.openai import OpenAIAdapter

log = logging.getLogger(__name__)

ROLES = ("idea", "design", "code", "schema")


@dataclass
class ProviderRegistry:
    """Configured adapters plus the ordered chain for each pipeline role."""
    adapters: Dict[str, ProviderAdapter]
    roles: Dict[str, List[str]] = field(default_factory=dict)
    figma: Optional[FigmaClient] = None

    def get(self, name: str) -> ProviderAdapter:
        return self.adapters[name]

    def chain(self, role: str) -> List[ProviderAdapter]:
        """Adapters for ``role`` in configured order, skipping unconfigured ones."""
        names = self.roles.get(role) or list(self.adapters)
        return [self.adapters[n] for n in names if n in self.adapters]

    def status(self) -> Dict[str, bool]:
        return {
            "openai": "openai" in self.adapters,
            "gemini": "gemini" in self.adapters,
            "figma": self.figma is not None,
        }

    @staticmethod
    def from_settings(cfg: Settings = settings) -> "ProviderRegistry":
        adapters: Dict[str, ProviderAdapter] = {}
        if cfg.openai_api_key:
            adapters["openai"] = OpenAIAdapter(
                api_key=cfg.openai_api_key,
                model=cfg.openai_model,
                api_base=cfg.openai_api_base,
                temperature=cfg.openai_temperature,
                max_tokens=cfg.openai_max_tokens,
                timeout=cfg.advanced_timeout_seconds,
            )
        if cfg.gemini_api_key:
            adapters["gemini"] = GeminiAdapter(
                api_key=cfg.gemini_api_key,
                model=cfg.gemini_model,
                api_base=cfg.gemini_api_base,
                temperature=cfg.gemini_temperature,
                max_tokens=cfg.gemini_max_tokens,
                timeout=cfg.advanced_timeout_seconds,
            )
        figma = None
        if cfg.figma_api_key:
            figma = FigmaClient(token=cfg.figma_api_key, api_base=cfg.figma_api_base, timeout=cfg.figma_timeout_seconds)

        roles = {
            "idea": cfg.idea_providers,
            "design": cfg.design_providers,
            "code": cfg.code_providers,
            "schema": cfg.schema_providers,
        }
        log.info("Providers configured: %s", ", ".join(sorted(adapters)) or "none")
        return ProviderRegistry(adapters=adapters, roles=roles, figma=figma)
