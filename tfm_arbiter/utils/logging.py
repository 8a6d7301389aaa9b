"""Structured logging helpers.

Every module obtains its logger through :func:`get_logger`. The returned
adapter accepts an ``extra_data`` keyword carrying structured fields, which
the JSON formatter emits as top-level keys and the text formatter appends
after the message.
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that threads ``extra_data`` and the run id into records."""

    def process(self, msg, kwargs):
        extra_data = kwargs.pop("extra_data", None) or {}
        extra = dict(kwargs.get("extra") or {})
        extra["extra_data"] = extra_data
        extra["request_id"] = _request_id.get()
        kwargs["extra"] = extra
        return msg, kwargs


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        payload.update(getattr(record, "extra_data", None) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with structured fields appended as key=value."""

    def __init__(self):
        super().__init__(_TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        request_id = getattr(record, "request_id", None)
        if request_id:
            line = f"[{request_id}] {line}"
        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            fields = " ".join(f"{k}={v}" for k, v in extra_data.items())
            line = f"{line} | {fields}"
        return line


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module."""
    return StructuredLogger(logging.getLogger(name), {})


def setup_logging(level: str = "INFO", json_format: bool = False, stream=None) -> None:
    """Configure the root ``tfm_arbiter`` logger.

    Args:
        level: Log level name.
        json_format: Emit JSON lines instead of text.
        stream: Output stream (defaults to stderr).
    """
    root = logging.getLogger("tfm_arbiter")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else TextFormatter())
    root.addHandler(handler)
    root.propagate = False


def set_request_id(request_id: Optional[str]) -> None:
    """Tag subsequent log records in this context with a run id."""
    _request_id.set(request_id)


def get_request_id() -> Optional[str]:
    """Return the run id of the current context, if any."""
    return _request_id.get()


def log_llm_call(
    logger: StructuredLogger,
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    duration_ms: int,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """Record a single LLM call with its usage."""
    data = {
        "provider": provider,
        "model": model,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "duration_ms": duration_ms,
        "success": success,
    }
    if error:
        data["error"] = error
        logger.warning(f"LLM call to {provider} failed: {error}", extra_data=data)
    else:
        logger.debug(
            f"LLM call to {provider}/{model}: {input_tokens}+{output_tokens} tokens in {duration_ms}ms",
            extra_data=data,
        )
