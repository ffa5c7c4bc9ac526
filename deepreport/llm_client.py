"""OpenRouter LLM client via the OpenAI-compatible SDK."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from deepreport.config import settings
from deepreport.errors import RateLimitError, UpstreamError
from deepreport.services import logger as log_service


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class Completion:
    text: str
    usage: Usage


class LLMClient:
    """``(prompt, model) -> text`` over an OpenAI-compatible chat endpoint."""

    def __init__(self, openai_client: Any, *, max_tokens: int | None = None):
        self._client = openai_client
        self.max_tokens = max_tokens or settings.llm_max_tokens

    @staticmethod
    def _temperature_for_model(model: str) -> int:
        # Some OpenAI GPT-5-compatible gateways reject temperature=0.
        lowered = (model or "").lower()
        if "gpt-5" in lowered:
            return 1
        return 0

    async def complete(self, prompt: str, model: str, *, caller: str = "llm") -> Completion:
        import openai

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self._temperature_for_model(model),
            )
        except openai.RateLimitError as exc:
            log_service.log_llm_call(
                model=model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="rate_limited",
                error=str(exc),
            )
            raise RateLimitError(f"LLM rate limited: {exc}", source="llm") from exc
        except openai.APIStatusError as exc:
            log_service.log_llm_call(
                model=model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="failed",
                error=str(exc),
            )
            raise UpstreamError(
                f"LLM call failed: {exc}", source="llm", status_code=exc.status_code
            ) from exc

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        usage = getattr(response, "usage", None)
        mapped_usage = Usage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
        log_service.log_llm_call(
            model=model,
            caller=caller,
            input_tokens=mapped_usage.input_tokens,
            output_tokens=mapped_usage.output_tokens,
            duration_ms=elapsed_ms,
        )

        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = getattr(choices[0].message, "content", None) or ""
        return Completion(text=text, usage=mapped_usage)

    async def generate(self, prompt: str, model: str, *, caller: str = "llm") -> str:
        completion = await self.complete(prompt, model, caller=caller)
        return completion.text


def get_client() -> LLMClient:
    """Build an OpenRouter client from settings."""
    from openai import AsyncOpenAI

    base_url = settings.openrouter_base_url.strip() or "https://openrouter.ai/api/v1"
    openai_client = AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=base_url,
        max_retries=0,
    )
    return LLMClient(openai_client)


def get_model() -> str:
    """Get the default OpenRouter model id."""
    return settings.default_model


_client: LLMClient | None = None


def client() -> LLMClient:
    """Get or create the LLM client."""
    global _client
    if _client is None:
        _client = get_client()
    return _client
