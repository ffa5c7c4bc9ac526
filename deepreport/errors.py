"""Error taxonomy for research runs.

Every error carries a ``user_message`` safe to show to the person who started
the run; ``str(exc)`` keeps the technical detail for logs.
"""
from __future__ import annotations

from typing import Any


class DeepReportError(Exception):
    """Base class for all pipeline errors."""

    user_message: str = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class RateLimitError(DeepReportError):
    """A backend answered with HTTP 429 (or an equivalent signal). Retryable."""

    user_message = "Too many requests right now. Please wait a moment and try again."

    def __init__(self, message: str | None = None, *, source: str | None = None, **kwargs: Any):
        super().__init__(message, kwargs)
        self.source = source


class QuotaExhaustedError(DeepReportError):
    """The search quota is used up (HTTP 403). Never retried."""

    user_message = "The search quota has been exhausted. Please try again later or contact support."

    def __init__(self, message: str | None = None, *, source: str | None = None, **kwargs: Any):
        super().__init__(message, kwargs)
        self.source = source


class NoResultsError(DeepReportError):
    """The search backend returned zero results."""

    user_message = "No results found. Please refine your query and try again."


class SelectionError(DeepReportError):
    """Base class for failures of the ranking and selection stage."""


class NoRelevantResultsError(SelectionError):
    """Relevance analysis scored every candidate 0."""

    user_message = "None of the results were relevant. Please refine your query and try again."


class InsufficientDiversityError(SelectionError):
    """No candidate passed the score threshold with a distinct host."""

    user_message = (
        "Could not find enough diverse, high-quality sources. "
        "Please refine your query and try again."
    )


class ExtractionError(DeepReportError):
    """The model produced output that could not be parsed as JSON."""

    user_message = "The model returned a response that could not be understood. Please try again."
    excerpt_length = 200

    def __init__(self, message: str | None = None, *, raw_text: str = "", **kwargs: Any):
        super().__init__(message, kwargs)
        self.raw_excerpt = raw_text[: self.excerpt_length]


class ModelUnavailableError(DeepReportError):
    """The requested platform or model is unknown or disabled."""

    user_message = "The selected model is not available."

    def __init__(self, message: str | None = None, *, model: str | None = None, **kwargs: Any):
        super().__init__(message, kwargs)
        self.model = model
        if message:
            self.user_message = message


class UpstreamError(DeepReportError):
    """A backend failed with a status other than 429/403."""

    user_message = "An external service failed. Please try again."

    def __init__(
        self,
        message: str | None = None,
        *,
        source: str | None = None,
        status_code: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, kwargs)
        self.source = source
        self.status_code = status_code


def user_message_for(exc: BaseException) -> str:
    """Human-readable message for any exception raised during a run."""
    if isinstance(exc, DeepReportError):
        return exc.user_message
    if isinstance(exc, ValueError) and str(exc):
        return str(exc)
    return DeepReportError.user_message
