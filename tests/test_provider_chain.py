"""Tests for retry and fallback across providers."""
import pytest

from conftest import ScriptedAdapter
from matura.core.errors import ProviderError, ProviderExhaustedError
from matura.orchestration.chain import CallStats, ProviderChain
from matura.providers.base import FunctionSpec

SPEC = FunctionSpec(name="echo", description="test", parameters={"type": "object", "required": ["ok"]})


def _recording_sleep():
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    return sleep, delays


@pytest.mark.asyncio
async def test_falls_back_to_next_provider_after_retries():
    sleep, delays = _recording_sleep()
    broken = ScriptedAdapter("gemini", fail_all=True)
    working = ScriptedAdapter("openai", structured={"echo": {"ok": True}})
    stats = CallStats()
    chain = ProviderChain("design", [broken, working], max_attempts=2, backoff=1.0, sleep=sleep, stats=stats)

    response = await chain.structured(SPEC, "system", "user")

    assert response.provider == "openai"
    assert broken.calls == ["echo", "echo"]
    assert delays == [1.0]
    # only the provider that answered is counted
    assert stats.tokens == {"openai": 30}
    assert stats.confidence == 0.9


@pytest.mark.asyncio
async def test_truncated_output_is_not_retried_on_same_provider():
    sleep, delays = _recording_sleep()
    truncating = ScriptedAdapter("openai", structured={
        "echo": ProviderError("openai", "output truncated", kind="truncated"),
    })
    working = ScriptedAdapter("gemini", structured={"echo": {"ok": True}})
    chain = ProviderChain("code", [truncating, working], max_attempts=3, sleep=sleep)

    response = await chain.structured(SPEC, "system", "user")

    assert response.provider == "gemini"
    assert truncating.calls == ["echo"]
    assert delays == []


@pytest.mark.asyncio
async def test_exhausted_chain_lists_every_attempt():
    sleep, delays = _recording_sleep()
    chain = ProviderChain(
        "idea",
        [ScriptedAdapter("gemini", fail_all=True), ScriptedAdapter("openai", fail_all=True)],
        max_attempts=2, backoff=1.0, backoff_max=8.0, sleep=sleep,
    )
    with pytest.raises(ProviderExhaustedError) as exc:
        await chain.free_text("prompt", mode="analytical")
    assert exc.value.role == "idea"
    assert len(exc.value.attempts) == 4
    assert exc.value.attempts[0].startswith("gemini#1")


def test_backoff_is_exponential_and_capped():
    chain = ProviderChain("code", [], backoff=1.0, backoff_max=4.0)
    assert [chain._delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 4.0]
    assert not chain.available
