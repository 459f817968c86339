"""Process-wide singletons handed to routes through ``Depends``.

Tests replace them with ``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi import Depends, Request

from matura.api.rate_limit import SlidingWindowRateLimiter, client_key
from matura.core.config import settings
from matura.core.engine import GenerationEngine
from matura.providers.registry import ProviderRegistry
from matura.store.table_store import TableStore


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    return ProviderRegistry.from_settings(settings)


@lru_cache
def get_table_store() -> TableStore:
    return TableStore()


@lru_cache
def get_engine() -> GenerationEngine:
    return GenerationEngine(get_provider_registry(), settings)


@lru_cache
def get_rate_limiter() -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)


def enforce_rate_limit(request: Request, limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter)) -> None:
    limiter.hit(client_key(request, trust_forwarded_for=settings.trust_forwarded_for))
