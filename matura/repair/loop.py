"""Bounded validate-and-repair loop."""
from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from matura.core.config import settings
from matura.core.errors import GenerationError
from matura.repair.fixes import apply_fixes
from matura.repair.validators import validate_source

log = logging.getLogger(__name__)

# regenerate(previous_source, recent_errors) -> new source
Regenerator = Callable[[str, List[str]], Awaitable[str]]


@dataclass
class RepairResult:
    success: bool
    remaining_errors: List[str]
    code: str
    attempts: int = 0
    regenerations: int = 0
    applied_fixes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "remaining_errors": list(self.remaining_errors),
            "attempts": self.attempts,
            "regenerations": self.regenerations,
            "applied_fixes": list(self.applied_fixes),
        }


async def repair_source(
    code: str,
    table_name: Optional[str] = None,
    max_retries: int = settings.repair_max_retries,
    regenerate: Optional[Regenerator] = None,
    error_window: int = settings.repair_error_window,
    request_id: str = "-",
) -> RepairResult:
    """Validate ``code`` and repair it for at most ``max_retries`` iterations.

    Each iteration applies every deterministic fix, and calls ``regenerate``
    once if fatal issues remain, so the generator is invoked at most
    ``max_retries`` times.
    """
    ctx = {"request_id": request_id, "stage": "SELF_REPAIR"}
    recent: deque = deque(maxlen=error_window)
    applied: List[str] = []
    regenerations = 0
    attempts = 0

    for attempt in range(1, max_retries + 1):
        issues = validate_source(code, table_name)
        if not issues:
            break
        attempts = attempt
        recent.extend(str(i) for i in issues)
        log.info("Repair attempt %d: %d issue(s)", attempt, len(issues), extra=ctx)

        code, names = apply_fixes(code, [i for i in issues if i.auto_fixable])
        applied.extend(names)

        fatal = [i for i in issues if i.fatal]
        if not fatal:
            continue
        if regenerate is None:
            log.warning("Fatal issues and no generator: %s", "; ".join(map(str, fatal)), extra=ctx)
            break
        regenerations += 1
        try:
            code = await regenerate(code, list(recent))
        except GenerationError as e:
            log.warning("Regeneration failed: %s", e.message, extra=ctx)
            if e.source:
                code = e.source
            break

    remaining = [str(i) for i in validate_source(code, table_name)]
    if remaining:
        log.warning("Repair finished with %d remaining issue(s)", len(remaining), extra=ctx)
    return RepairResult(
        success=not remaining,
        remaining_errors=remaining,
        code=code,
        attempts=attempts,
        regenerations=regenerations,
        applied_fixes=applied,
    )


async def validate_and_repair(
    source_path: Path,
    max_retries: int = settings.repair_max_retries,
    regenerate: Optional[Regenerator] = None,
    table_name: Optional[str] = None,
    request_id: str = "-",
) -> RepairResult:
    """File-based wrapper around ``repair_source``; rewrites the file when the code changed."""
    source_path = Path(source_path)
    original = source_path.read_text(encoding="utf-8")
    result = await repair_source(
        original,
        table_name=table_name,
        max_retries=max_retries,
        regenerate=regenerate,
        request_id=request_id,
    )
    if result.code != original:
        source_path.write_text(result.code, encoding="utf-8")
    return result
