from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from matura.core.workflow import GenerationMode, GenerationStage
from matura.inference.types import AppSchema, DesignSpec, Intent
from matura.orchestration.chain import CallStats
from matura.quality.scorer import QualityScores
from matura.repair.loop import RepairResult


@dataclass
class GenerateOptions:
    use_design_system: bool = True
    figma_file_key: Optional[str] = None
    write_files: bool = False
    # tables already in the store: name -> schema signature, None when schemaless
    taken_tables: Dict[str, Optional[tuple]] = field(default_factory=dict)


@dataclass
class GenerationContext:
    """Mutable state of one request as it moves through the stages."""
    request_id: str
    idea: str
    mode: GenerationMode
    options: GenerateOptions = field(default_factory=GenerateOptions)
    stats: CallStats = field(default_factory=CallStats)

    intent: Optional[Intent] = None
    schema: Optional[AppSchema] = None
    design: Optional[DesignSpec] = None
    source: Optional[str] = None
    component_name: str = ""
    review: Optional[Dict[str, Any]] = None
    repair: Optional[RepairResult] = None
    scores: Optional[QualityScores] = None
    output_path: Optional[str] = None

    stage_providers: Dict[str, List[str]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    @property
    def providers(self) -> List[str]:
        """Providers that contributed to the result, in first-use order."""
        seen: List[str] = []
        for names in self.stage_providers.values():
            for name in names:
                if name not in seen:
                    seen.append(name)
        return seen


@dataclass(frozen=True)
class GenerationResult:
    request_id: str
    idea: str
    mode: str
    status: str
    intent: Intent
    schema: AppSchema
    design: Optional[DesignSpec]
    code: str
    component_name: str
    scores: QualityScores
    providers: List[str]
    stage_providers: Dict[str, List[str]]
    tokens: Dict[str, int]
    validation: Dict[str, Any]
    confidence: float
    processing_time_ms: int
    skipped_stages: List[str]
    output_path: Optional[str] = None

    def to_metadata(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "mode": self.mode,
            "providers": list(self.providers),
            "stage_providers": dict(self.stage_providers),
            "quality_scores": self.scores.to_dict(),
            "tokens": dict(self.tokens),
            "processing_time_ms": self.processing_time_ms,
            "confidence": self.confidence,
            "validation": dict(self.validation),
            "skipped_stages": list(self.skipped_stages),
        }

    def to_app(self) -> Dict[str, Any]:
        return {
            "table_name": self.schema.table_name,
            "component_name": self.component_name,
            "schema": self.schema.to_dict(),
            "code": self.code,
            "design": self.design.to_dict() if self.design else None,
            "intent": self.intent.to_dict(),
        }
