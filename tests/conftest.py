from __future__ import annotations

import json
from collections import defaultdict
from typing import Any

import pytest

from deepreport.config import Settings


class FakeLLM:
    """Scripted stand-in for ``LLMClient``, keyed by the calling agent's name.

    Each queued reply is either text (returned) or an exception (raised).
    """

    def __init__(self, replies: dict[str, list[Any]] | None = None):
        self.replies: dict[str, list[Any]] = defaultdict(list)
        for caller, queue in (replies or {}).items():
            self.replies[caller].extend(queue)
        self.calls: list[tuple[str, str, str]] = []

    def queue(self, caller: str, *replies: Any) -> None:
        self.replies[caller].extend(replies)

    async def generate(self, prompt: str, model: str, *, caller: str = "llm") -> str:
        self.calls.append((caller, model, prompt))
        if not self.replies[caller]:
            raise AssertionError(f"No scripted reply left for {caller}")
        reply = self.replies[caller].pop(0)
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply

    def prompts_for(self, caller: str) -> list[str]:
        return [prompt for name, _, prompt in self.calls if name == caller]


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openrouter_api_key="test",
        default_model="google/gemini-2.0-flash-001",
        retry_max_attempts=3,
        retry_base_delay_ms=1000,
        image_analysis_enabled=False,
    )
