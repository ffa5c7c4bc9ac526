"""Centralized logging service using loguru."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from deepreport.config import settings

NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "asyncio",
)

_configured = False


def configure_logging(log_dir: str | None = None, level: str | None = None) -> None:
    """Install the console and rotating file sinks. Safe to call more than once."""
    global _configured
    if _configured:
        return

    log_path = Path(log_dir or settings.log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=(level or settings.app_log_level).upper(),
        colorize=True,
    )
    logger.add(
        log_path / "deepreport_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())

    _configured = True


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=str, ensure_ascii=False)


def _emit(kind: str, level: str, payload: dict[str, Any]) -> None:
    """Write one structured record as ``KIND: {json}``."""
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
    logger.bind(kind=kind).log(level, f"{kind}: {_dumps(record)}")


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log an LLM API call with its token usage."""
    failed = error is not None
    _emit(
        "LLM_CALL_FAILED" if failed else "LLM_CALL",
        "ERROR" if failed else "INFO",
        {
            "model": model,
            "caller": caller,
            "tokens": {"input": input_tokens, "output": output_tokens, "total": input_tokens + output_tokens},
            "duration_ms": duration_ms,
            "status": status,
            "error": error,
        },
    )


def log_research_step(
    run_id: str,
    step_type: str,
    status: str,
    data: Optional[dict] = None,
) -> None:
    """Log a pipeline stage of one research run; failed stages are warnings."""
    _emit(
        "RESEARCH_STEP",
        "WARNING" if status == "failed" else "INFO",
        {"run_id": run_id, "step_type": step_type, "status": status, "data": data},
    )


def log_event(event_type: str, message: str, **kwargs) -> None:
    _emit("EVENT", "INFO", {"event_type": event_type, "message": message, **kwargs})
