"""Error taxonomy shared by the pipeline, the table store and the HTTP layer.

Only the exception handlers registered in ``matura.main`` turn these into
HTTP responses; everything below the API raises them untranslated.
"""
from __future__ import annotations
from typing import Any, List, Optional


class MaturaError(Exception):
    """Base class for all service errors."""
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(MaturaError):
    pass


class ValidationError(MaturaError):
    """Bad input. Never retried."""
    status_code = 400


class RecordNotFoundError(MaturaError):
    status_code = 404

    def __init__(self, table: str, record_id: str):
        super().__init__(f"Record '{record_id}' not found in '{table}'")
        self.table = table
        self.record_id = record_id


class RateLimitError(MaturaError):
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__("Rate limit exceeded")
        self.retry_after = retry_after


class ProviderError(MaturaError):
    """A single provider call failed.

    ``kind`` is one of: unreachable, http, timeout, malformed, truncated.
    """

    def __init__(self, provider: str, message: str, kind: str = "http", details: Optional[Any] = None):
        super().__init__(f"{provider}: {message}", details)
        self.provider = provider
        self.kind = kind


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider: str, timeout: float):
        super().__init__(provider, f"timed out after {timeout:.0f}s", kind="timeout")
        self.timeout = timeout


class ProviderExhaustedError(ProviderError):
    """Every provider in a role chain failed."""

    def __init__(self, role: str, attempts: List[str]):
        super().__init__(role, "all providers failed", kind="exhausted", details=attempts)
        self.role = role
        self.attempts = attempts


class GenerationError(MaturaError):
    """Code generation failed at ``stage``.

    ``source`` carries a contract-violating candidate when one was produced,
    so the repair loop can work from it.
    """

    def __init__(self, stage: str, message: str, source: Optional[str] = None, providers: Optional[List[str]] = None):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage
        self.reason = message
        self.source = source
        self.providers = providers or []


class PipelineFailedError(MaturaError):
    def __init__(self, stage: str, message: str, category: str, recovery_suggestion: str):
        super().__init__(message)
        self.stage = stage
        self.category = category
        self.recovery_suggestion = recovery_suggestion


class PersistenceError(MaturaError):
    pass
