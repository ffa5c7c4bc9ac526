from __future__ import annotations

import re
from urllib.parse import urlparse

import httpx

from deepreport.errors import QuotaExhaustedError, RateLimitError, UpstreamError


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Clean fetched content: trim surrounding whitespace and cap the length."""
    text = re.sub(r"\n{3,}", "\n\n", text).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_domain(url: str) -> str:
    """Extract domain from URL for display."""
    try:
        return urlparse(url).netloc
    except Exception:
        return url


def origin_key(url: str) -> str:
    """Scheme plus lower-cased host, used to tell sources apart by site."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url.lower()
    host = parsed.hostname or parsed.netloc or url
    return f"{parsed.scheme.lower()}://{host.lower()}"


def check_response(response: httpx.Response, *, source: str, forbidden_is_quota: bool = False) -> None:
    """Translate backend HTTP failures into pipeline errors.

    429 is always a rate limit. 403 means an exhausted quota only for backends
    that use it that way (search); elsewhere it is an ordinary failure.
    """
    status = response.status_code
    if status < 400:
        return
    if status == 429:
        raise RateLimitError(f"{source} returned 429", source=source)
    if status == 403 and forbidden_is_quota:
        raise QuotaExhaustedError(f"{source} returned 403", source=source)
    raise UpstreamError(f"{source} returned {status}", source=source, status_code=status)
