"""Static quality scores (0-100) for a generated component."""
from __future__ import annotations
import re
from dataclasses import asdict, dataclass
from typing import List, Optional

from matura.inference.types import DesignSpec, Intent
from matura.repair.validators import Issue, validate_source


@dataclass(frozen=True)
class QualityScores:
    technical: int
    design: int
    creativity: int
    overall: int
    production_ready: bool

    def to_dict(self) -> dict:
        return asdict(self)


def _clamp(value: float) -> int:
    return int(max(0, min(100, round(value))))


def technical_score(source: str, issues: List[Issue]) -> int:
    score = 60.0
    if re.search(r"\binterface\s+\w+|\btype\s+\w+\s*=", source):
        score += 10
    if "try {" in source or "catch (" in source:
        score += 10
    if re.search(r"set(Loading|IsLoading)\(", source):
        score += 10
    if not issues:
        score += 10
    score -= 20 * sum(1 for i in issues if i.fatal)
    score -= 5 * sum(1 for i in issues if i.auto_fixable)
    return _clamp(score)


def design_score(source: str, design: Optional[DesignSpec]) -> int:
    score = 50.0
    if re.search(r"<Card[\s>]|<Table[\s>]|<Dialog[\s>]", source):
        score += 10
    if source.count("className=") >= 10:
        score += 10
    if re.search(r"\b(sm|md|lg|xl):", source):
        score += 10
    if re.search(r"\bhover:|\bfocus:|transition", source):
        score += 5
    if re.search(r"No records|empty|まだ", source, re.IGNORECASE):
        score += 5
    if design is not None and any(c.lower() in source.lower() for c in design.colors.values()):
        score += 10
    return _clamp(score)


def creativity_score(intent: Intent, design: Optional[DesignSpec]) -> int:
    score = 50.0
    if intent.source == "ai":
        score += 10
    if design is not None and design.source != "fallback":
        score += 15
    if design is not None and design.tokens:
        score += 10
    score += min(15, 5 * len(intent.key_features))
    return _clamp(score)


def score_component(
    source: str,
    intent: Intent,
    design: Optional[DesignSpec] = None,
    table_name: Optional[str] = None,
    issues: Optional[List[Issue]] = None,
) -> QualityScores:
    if issues is None:
        issues = validate_source(source, table_name)
    technical = technical_score(source, issues)
    design_value = design_score(source, design)
    creativity = creativity_score(intent, design)
    overall = _clamp(0.4 * technical + 0.3 * design_value + 0.3 * creativity)
    return QualityScores(
        technical=technical,
        design=design_value,
        creativity=creativity,
        overall=overall,
        production_ready=overall >= 70 and not any(i.fatal for i in issues),
    )
