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


class OpenAIAdapter(ProviderAdapter):
    """Chat Completions API, structured output through forced tool calls."""

    name = "openai"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _usage(self, body: dict) -> TokenUsage:
        usage = body.get("usage") or {}
        return TokenUsage(
            prompt=int(usage.get("prompt_tokens", 0)),
            completion=int(usage.get("completion_tokens", 0)),
            total=int(usage.get("total_tokens", 0)),
        )

    def _first_choice(self, body: dict, opts: CallOptions, tokens: TokenUsage) -> dict:
        choices = body.get("choices") or []
        if not choices:
            raise ProviderError(self.name, "response has no choices", kind="malformed")
        choice = choices[0]
        if choice.get("finish_reason") == "length" or tokens.completion > (opts.max_tokens or 0):
            raise ProviderError(self.name, "output truncated by token budget", kind="truncated")
        return choice

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
            "model": opts.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "tools": [{
                "type": "function",
                "function": {
                    "name": function_spec.name,
                    "description": function_spec.description,
                    "parameters": function_spec.parameters,
                },
            }],
            "tool_choice": {"type": "function", "function": {"name": function_spec.name}},
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
        }
        body = await self._post_json(f"{self.api_base}/chat/completions", payload, timeout=opts.timeout)
        tokens = self._usage(body)
        choice = self._first_choice(body, opts, tokens)

        tool_calls = (choice.get("message") or {}).get("tool_calls") or []
        call = next((c for c in tool_calls if (c.get("function") or {}).get("name") == function_spec.name), None)
        if call is None:
            raise ProviderError(self.name, f"no {function_spec.name} tool call in response", kind="malformed")

        try:
            data = loads_lenient(call["function"].get("arguments", ""))
        except LenientJSONError as e:
            raise ProviderError(self.name, f"{function_spec.name} arguments are not JSON", kind="malformed") from e

        self._check_required(function_spec, data)
        return self._finish(data, tokens, body.get("model", opts.model), started, function_spec.required)

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
            "model": opts.model,
            "messages": [
                {"role": "system", "content": MODE_SYSTEM_PROMPT.get(mode, MODE_SYSTEM_PROMPT["creative"])},
                {"role": "user", "content": prompt},
            ],
            "temperature": opts.temperature,
            "max_tokens": opts.max_tokens,
        }
        body = await self._post_json(f"{self.api_base}/chat/completions", payload, timeout=opts.timeout)
        tokens = self._usage(body)
        choice = self._first_choice(body, opts, tokens)
        content = (choice.get("message") or {}).get("content")
        if not content:
            raise ProviderError(self.name, "empty completion", kind="malformed")
        return self._finish(content, tokens, body.get("model", opts.model), started, [])
