from __future__ import annotations

from typing import Mapping

from deepreport.config import PlatformSettings
from deepreport.errors import ModelUnavailableError


class ModelRegistry:
    """Platform and model enablement, keyed by ``platform/model`` ids.

    Built once from configuration and handed to the orchestrator; nothing in
    a run reads global settings to decide whether a model may be used.
    """

    def __init__(self, platforms: Mapping[str, PlatformSettings]):
        self._platforms = dict(platforms)

    @classmethod
    def from_settings(cls, settings) -> "ModelRegistry":
        return cls(settings.platforms)

    @staticmethod
    def split(model_id: str) -> tuple[str, str]:
        platform, sep, model = model_id.partition("/")
        if not sep or not platform or not model:
            raise ModelUnavailableError(
                f"Model id '{model_id}' must look like 'platform/model'", model=model_id
            )
        return platform, model

    def ensure_available(self, model_id: str) -> None:
        platform, model = self.split(model_id)
        platform_config = self._platforms.get(platform)
        if platform_config is None or not platform_config.enabled:
            raise ModelUnavailableError(f"{platform} platform is not enabled", model=model_id)
        if model not in platform_config.models:
            raise ModelUnavailableError(f"{model} model does not exist", model=model_id)
        if not platform_config.models[model]:
            raise ModelUnavailableError(f"{model} model is disabled", model=model_id)

    def enabled_models(self) -> list[str]:
        return [
            f"{platform}/{model}"
            for platform, config in self._platforms.items()
            if config.enabled
            for model, enabled in config.models.items()
            if enabled
        ]
