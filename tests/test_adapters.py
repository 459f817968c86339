"""Tests for the OpenAI, Gemini and Figma clients against mocked HTTP."""
import json

import httpx
import pytest

from matura.core.errors import ProviderError
from matura.providers.base import CallOptions, FunctionSpec, UsageMeter
from matura.providers.figma import FigmaClient, extract_design_tokens, parse_file_key
from matura.providers.gemini import GeminiAdapter
from matura.providers.openai import OpenAIAdapter

SPEC = FunctionSpec(
    name="infer_app_schema",
    description="schema",
    parameters={"type": "object", "required": ["table_name", "fields"]},
)
SCHEMA = {"table_name": "tasks", "fields": [{"name": "title", "type": "text"}]}


def _openai(handler, meter=None):
    return OpenAIAdapter(
        api_key="sk-test", model="gpt-4o", api_base="https://openai.test/v1",
        max_tokens=1000, meter=meter or UsageMeter(), transport=httpx.MockTransport(handler),
    )


def _gemini(handler):
    return GeminiAdapter(
        api_key="g-test", model="gemini-1.5-flash", api_base="https://gemini.test/v1beta",
        max_tokens=1000, meter=UsageMeter(), transport=httpx.MockTransport(handler),
    )


def _openai_body(arguments, finish_reason="stop", completion_tokens=50):
    return {
        "model": "gpt-4o-2024",
        "choices": [{
            "finish_reason": finish_reason,
            "message": {"tool_calls": [{"function": {"name": SPEC.name, "arguments": arguments}}]},
        }],
        "usage": {"prompt_tokens": 100, "completion_tokens": completion_tokens, "total_tokens": 100 + completion_tokens},
    }


@pytest.mark.asyncio
async def test_openai_structured_call():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_openai_body(json.dumps(SCHEMA)))

    meter = UsageMeter()
    response = await _openai(handler, meter).execute_structured_call(SPEC, "system", "build a todo app")

    assert seen["url"] == "https://openai.test/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["tool_choice"]["function"]["name"] == SPEC.name
    assert response.data == SCHEMA
    assert response.provider == "openai"
    assert response.tokens.total == 150
    assert meter.snapshot()["openai"]["calls"] == 1


@pytest.mark.asyncio
async def test_openai_lenient_arguments():
    """Arguments wrapped in a code fence are still decoded."""
    fenced = "```json\n" + json.dumps(SCHEMA) + "\n```"
    response = await _openai(lambda r: httpx.Response(200, json=_openai_body(fenced))).execute_structured_call(
        SPEC, "system", "user",
    )
    assert response.data["table_name"] == "tasks"


@pytest.mark.asyncio
async def test_openai_error_kinds():
    truncated = _openai(lambda r: httpx.Response(200, json=_openai_body(json.dumps(SCHEMA), "length")))
    with pytest.raises(ProviderError) as exc:
        await truncated.execute_structured_call(SPEC, "system", "user")
    assert exc.value.kind == "truncated"

    failing = _openai(lambda r: httpx.Response(503, text="overloaded"))
    with pytest.raises(ProviderError) as exc:
        await failing.execute_structured_call(SPEC, "system", "user")
    assert exc.value.kind == "http"

    missing = _openai(lambda r: httpx.Response(200, json=_openai_body(json.dumps({"table_name": "x"}))))
    with pytest.raises(ProviderError) as exc:
        await missing.execute_structured_call(SPEC, "system", "user")
    assert exc.value.kind == "malformed"


@pytest.mark.asyncio
async def test_openai_timeout_and_unreachable():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderError) as exc:
        await _openai(timeout).execute_structured_call(SPEC, "system", "user", CallOptions(timeout=5))
    assert exc.value.kind == "timeout"

    with pytest.raises(ProviderError) as exc:
        await _openai(refused).generate_free_text("hi")
    assert exc.value.kind == "unreachable"


@pytest.mark.asyncio
async def test_openai_free_text_uses_mode_temperature():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "choices": [{"finish_reason": "stop", "message": {"content": "a plan"}}],
            "usage": {"prompt_tokens": 5, "completion_tokens": 5, "total_tokens": 10},
        })

    options = CallOptions(timeout=10)
    response = await _openai(handler).generate_free_text("plan it", mode="analytical", options=options)
    assert response.data == "a plan"
    assert seen["body"]["temperature"] == 0.3
    # caller's options are left untouched
    assert options.temperature is None


@pytest.mark.asyncio
async def test_gemini_function_call():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "candidates": [{
                "finishReason": "STOP",
                "content": {"parts": [{"functionCall": {"name": SPEC.name, "args": SCHEMA}}]},
            }],
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 20, "totalTokenCount": 30},
        })

    response = await _gemini(handler).execute_structured_call(SPEC, "system", "user")
    assert seen["url"].path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert seen["url"].params["key"] == "g-test"
    assert seen["body"]["toolConfig"]["functionCallingConfig"]["mode"] == "ANY"
    assert response.data == SCHEMA
    assert response.tokens.total == 30


@pytest.mark.asyncio
async def test_gemini_text_fallback_and_truncation():
    text_answer = _gemini(lambda r: httpx.Response(200, json={
        "candidates": [{"content": {"parts": [{"text": "Here:\n" + json.dumps(SCHEMA)}]}}],
    }))
    response = await text_answer.execute_structured_call(SPEC, "system", "user")
    assert response.data == SCHEMA

    truncated = _gemini(lambda r: httpx.Response(200, json={
        "candidates": [{"finishReason": "MAX_TOKENS", "content": {"parts": [{"text": "{"}]}}],
    }))
    with pytest.raises(ProviderError) as exc:
        await truncated.execute_structured_call(SPEC, "system", "user")
    assert exc.value.kind == "truncated"


def test_figma_token_extraction():
    document = {
        "type": "DOCUMENT",
        "children": [
            {"type": "FRAME", "fills": [{"type": "SOLID", "color": {"r": 1, "g": 0, "b": 0}}], "children": [
                {"type": "TEXT", "style": {"fontFamily": "Inter"}, "fills": [
                    {"type": "SOLID", "color": {"r": 1, "g": 0, "b": 0}},
                ]},
                {"type": "COMPONENT", "name": "PrimaryButton", "fills": [
                    {"type": "SOLID", "color": {"r": 0, "g": 0, "b": 1}},
                    {"type": "GRADIENT_LINEAR"},
                ]},
            ]},
        ],
    }
    tokens = extract_design_tokens(document)
    assert tokens["colors"] == ["#ff0000", "#0000ff"]
    assert tokens["fonts"] == ["Inter"]
    assert tokens["components"] == ["PrimaryButton"]


def test_parse_file_key():
    assert parse_file_key("https://www.figma.com/file/AbC123/My-Design") == "AbC123"
    assert parse_file_key(" AbC123 ") == "AbC123"


@pytest.mark.asyncio
async def test_figma_client():
    def handler(request):
        assert request.headers["X-Figma-Token"] == "fig-test"
        assert request.url.path == "/v1/files/AbC123"
        return httpx.Response(200, json={"name": "Brand", "document": {"type": "DOCUMENT", "children": []}})

    client = FigmaClient(token="fig-test", api_base="https://figma.test/v1", transport=httpx.MockTransport(handler))
    tokens = await client.fetch_design_tokens("https://www.figma.com/design/AbC123/x")
    assert tokens["file_name"] == "Brand"
    assert tokens["colors"] == []
