from __future__ import annotations

from deepreport.config import settings
from deepreport.errors import (
    DeepReportError,
    ExtractionError,
    ModelUnavailableError,
    NoResultsError,
    QuotaExhaustedError,
    RateLimitError,
    SelectionError,
    UpstreamError,
)
from deepreport.services.model_registry import ModelRegistry

_STATUS_BY_ERROR: tuple[tuple[type[DeepReportError], int], ...] = (
    (RateLimitError, 429),
    (QuotaExhaustedError, 403),
    (NoResultsError, 422),
    (SelectionError, 422),
    (ExtractionError, 502),
    (UpstreamError, 502),
    (ModelUnavailableError, 400),
)


def get_registry() -> ModelRegistry:
    return ModelRegistry.from_settings(settings)


def get_available_models() -> list[dict[str, str]]:
    """Return every enabled model as ``{"id", "platform", "name"}``."""
    models = []
    for model_id in get_registry().enabled_models():
        platform, name = ModelRegistry.split(model_id)
        models.append({"id": model_id, "platform": platform, "name": name})
    return models


def status_for_error(exc: BaseException) -> int:
    if isinstance(exc, ValueError):
        return 400
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 500
