"""Dataclasses for component generation."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class GeneratedFile:
    """A file to be written relative to the output directory."""
    path: str
    content: str


@dataclass
class PassOutput:
    """Result of one generation pass; fed into the next pass's prompt."""
    name: str
    content: str
    provider: str
    tokens: int = 0


@dataclass
class GeneratedComponent:
    source: str
    component_name: str
    tier: str
    passes: List[PassOutput] = field(default_factory=list)
    review: Optional[Dict[str, object]] = None

    @property
    def providers(self) -> List[str]:
        seen: List[str] = []
        for p in self.passes:
            if p.provider not in seen:
                seen.append(p.provider)
        return seen
