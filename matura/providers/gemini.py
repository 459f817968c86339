from __future__ import annotations
import time
from dataclasses import replace
from typing import Optional

from matura.core.errors import ProviderError
from matura.providers.base import (
    MODE_SYSTEM_PROMPT,
    MODE_TEMPERATURE,
    CallOptions,
    FunctionSpec,
    ProviderAdapter,
    ProviderResponse,
    TokenUsage,
)
from matura.utils.lenient_json import LenientJSONError, loads_lenient


class GeminiAdapter(ProviderAdapter):
    """generateContent API, structured output through forced function calling."""

    name = "gemini"

    def _url(self, model: str) -> str:
        return f"{self.api_base}/models/{model}:generateContent"

    def _generation_config(self, opts: CallOptions) -> dict:
        return {
            "temperature": opts.temperature,
            "maxOutputTokens": opts.max_tokens,
            "topP": 0.8,
            "topK": 40,
        }

    def _usage(self, body: dict) -> TokenUsage:
        usage = body.get("usageMetadata") or {}
        return TokenUsage(
            prompt=int(usage.get("promptTokenCount", 0)),
            completion=int(usage.get("candidatesTokenCount", 0)),
            total=int(usage.get("totalTokenCount", 0)),
        )

    def _parts(self, body: dict, opts: CallOptions, tokens: TokenUsage) -> list:
        candidates = body.get("candidates") or []
        if not candidates:
            raise ProviderError(self.name, "response has no candidates", kind="malformed")
        candidate = candidates[0]
        if candidate.get("finishReason") == "MAX_TOKENS" or tokens.completion > (opts.max_tokens or 0):
            raise ProviderError(self.name, "output truncated by token budget", kind="truncated")
        return (candidate.get("content") or {}).get("parts") or []

    async def execute_structured_call(
        self,
        function_spec: FunctionSpec,
        system_prompt: str,
        user_prompt: str,
        options: Optional[CallOptions] = None,
    ) -> ProviderResponse:
        opts = self._resolve(options)
        started = time.monotonic()
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "tools": [{
                "functionDeclarations": [{
                    "name": function_spec.name,
                    "description": function_spec.description,
                    "parameters": function_spec.parameters,
                }],
            }],
            "toolConfig": {
                "functionCallingConfig": {"mode": "ANY", "allowedFunctionNames": [function_spec.name]},
            },
            "generationConfig": self._generation_config(opts),
        }
        body = await self._post_json(
            self._url(opts.model), payload, timeout=opts.timeout, params={"key": self.api_key},
        )
        tokens = self._usage(body)
        parts = self._parts(body, opts, tokens)

        data = None
        for part in parts:
            call = part.get("functionCall")
            if call and call.get("name") == function_spec.name:
                data = call.get("args")
                break
        if data is None:
            # Some models answer with JSON text despite the forced call.
            text = "".join(part.get("text", "") for part in parts)
            try:
                data = loads_lenient(text)
            except LenientJSONError as e:
                raise ProviderError(self.name, f"no {function_spec.name} function call in response", kind="malformed") from e

        self._check_required(function_spec, data)
        return self._finish(data, tokens, opts.model, started, function_spec.required)

    async def generate_free_text(
        self,
        prompt: str,
        mode: str = "creative",
        options: Optional[CallOptions] = None,
    ) -> ProviderResponse:
        options = options or CallOptions()
        if options.temperature is None:
            options = replace(options, temperature=MODE_TEMPERATURE.get(mode, self.temperature))
        opts = self._resolve(options)
        started = time.monotonic()
        payload = {
            "systemInstruction": {"parts": [{"text": MODE_SYSTEM_PROMPT.get(mode, MODE_SYSTEM_PROMPT["creative"])}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": self._generation_config(opts),
        }
        body = await self._post_json(
            self._url(opts.model), payload, timeout=opts.timeout, params={"key": self.api_key},
        )
        tokens = self._usage(body)
        text = "".join(part.get("text", "") for part in self._parts(body, opts, tokens))
        if not text:
            raise ProviderError(self.name, "empty completion", kind="malformed")
        return self._finish(text, tokens, opts.model, started, [])
