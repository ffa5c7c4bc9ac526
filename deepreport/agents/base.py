from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from deepreport.errors import ExtractionError
from deepreport.llm_client import LLMClient, client as llm_client, get_model
from deepreport.services.json_extractor import extract_json_object


class BaseAgent:
    """Single-prompt LLM agent.

    Subclasses build a prompt, call ``ask`` or ``ask_model`` and turn the
    reply into a typed result. The LLM client is resolved lazily so tests can
    assign ``agent.client`` before the first call.
    """

    name: str = "base"

    def __init__(self, model: str | None = None, client: LLMClient | None = None):
        self.model = model or get_model()
        self.client = client

    def _active_client(self) -> LLMClient:
        if self.client is None:
            self.client = llm_client()
        return self.client

    async def ask(self, prompt: str) -> str:
        return await self._active_client().generate(prompt, self.model, caller=self.name)

    async def ask_json(self, prompt: str) -> dict[str, Any]:
        """Ask and decode the reply as a JSON object (tolerating messy output)."""
        return extract_json_object(await self.ask(prompt))

    async def ask_model(self, prompt: str, model_cls: type[BaseModel]) -> Any:
        text = await self.ask(prompt)
        payload = extract_json_object(text)
        try:
            return model_cls.model_validate(payload)
        except ValidationError as exc:
            raise ExtractionError(
                f"{self.name} response did not match {model_cls.__name__}: {exc.error_count()} errors",
                raw_text=text,
            ) from exc
