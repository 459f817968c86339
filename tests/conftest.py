"""Shared fixtures: hermetic settings and scripted provider adapters."""
import os
import tempfile

_TMP = tempfile.mkdtemp(prefix="matura-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/matura.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["FIGMA_API_KEY"] = ""
os.environ["GENERATED_DIR"] = os.path.join(_TMP, "generated")
os.environ["WRITE_GENERATED_FILES"] = "false"

from typing import Any, Callable, Dict, List, Optional, Union  # noqa: E402

import pytest  # noqa: E402

from matura.core.errors import ProviderError  # noqa: E402
from matura.providers.base import (  # noqa: E402
    CallOptions,
    FunctionSpec,
    ProviderAdapter,
    ProviderResponse,
    ResponseQuality,
    TokenUsage,
)
from matura.providers.registry import ProviderRegistry  # noqa: E402

Scripted = Union[Any, Callable[[str], Any], Exception]


class ScriptedAdapter(ProviderAdapter):
    """Adapter that answers from canned payloads keyed by function name.

    A missing entry, or an entry that is an exception, makes the call fail
    the way a real provider would.
    """

    def __init__(self, name: str, structured: Optional[Dict[str, Scripted]] = None, free_text: Scripted = "plan",
                 fail_all: bool = False):
        super().__init__(api_key="test", model=f"{name}-test", api_base="http://provider.test")
        self.name = name
        self.structured = structured or {}
        self.free_text = free_text
        self.fail_all = fail_all
        self.calls: List[str] = []

    def _respond(self, scripted: Scripted, prompt: str) -> ProviderResponse:
        if isinstance(scripted, Exception):
            raise scripted
        data = scripted(prompt) if callable(scripted) else scripted
        return ProviderResponse(
            success=True,
            data=data,
            provider=self.name,
            model=self.model,
            tokens=TokenUsage(prompt=10, completion=20, total=30),
            quality=ResponseQuality(confidence=0.9),
        )

    async def execute_structured_call(self, function_spec: FunctionSpec, system_prompt: str, user_prompt: str,
                                      options: Optional[CallOptions] = None) -> ProviderResponse:
        self.calls.append(function_spec.name)
        if self.fail_all:
            raise ProviderError(self.name, "service unavailable", kind="unreachable")
        if function_spec.name not in self.structured:
            raise ProviderError(self.name, f"no answer for {function_spec.name}", kind="malformed")
        return self._respond(self.structured[function_spec.name], user_prompt)

    async def generate_free_text(self, prompt: str, mode: str = "creative",
                                 options: Optional[CallOptions] = None) -> ProviderResponse:
        self.calls.append(f"free_text:{mode}")
        if self.fail_all:
            raise ProviderError(self.name, "service unavailable", kind="unreachable")
        return self._respond(self.free_text, prompt)


def make_registry(*adapters: ProviderAdapter, roles: Optional[Dict[str, List[str]]] = None) -> ProviderRegistry:
    return ProviderRegistry(
        adapters={a.name: a for a in adapters},
        roles=roles or {
            "idea": ["gemini", "openai"],
            "design": ["gemini", "openai"],
            "code": ["openai", "gemini"],
            "schema": ["openai", "gemini"],
        },
    )


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def scripted_adapter():
    return ScriptedAdapter


@pytest.fixture
def db_session():
    from matura.db import models  # noqa: F401
    from matura.db.session import Base, SessionLocal, engine

    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
