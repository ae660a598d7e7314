"""
Structured logging for the content repurposer.

Every record is stamped with the request context (request id, account id
and the pipeline stage the request has reached) and scrubbed of provider
keys, bearer tokens and database DSNs before it is formatted. Production
emits one JSON object per line; development gets a colored single line.
"""

import json
import logging
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_account_id: ContextVar[Optional[str]] = ContextVar("account_id", default=None)
_stage: ContextVar[Optional[str]] = ContextVar("pipeline_stage", default=None)

REDACTED = "[REDACTED]"

_SECRET_PATTERNS = [
    re.compile(r'(?:api[_-]?key|secret|token|authorization)["\']?\s*[:=]\s*["\']?[^\s,}"\']+', re.IGNORECASE),
    re.compile(r'bearer\s+[\w.-]+', re.IGNORECASE),
    re.compile(r'sk-ant-[\w-]+'),
    re.compile(r'sk-(?:proj-)?[\w-]{16,}'),
    re.compile(r'gsk_\w+'),
    re.compile(r'AIza[\w-]{20,}'),
    re.compile(r'postgres(?:ql)?://\S+', re.IGNORECASE),
    re.compile(r'rediss?://\S+', re.IGNORECASE),
]

# LogRecord attributes that never go into the "extra" payload
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "request_id", "account_id", "stage"}


def redact_sensitive_data(message: str) -> str:
    """Replace secrets in a log message with [REDACTED]."""
    if not message:
        return message
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub(REDACTED, message)
    return message


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        record.account_id = _account_id.get() or "-"
        record.stage = _stage.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub secrets from the message and its string arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log aggregation in production."""

    def __init__(self, service_name: str = "content-repurposer"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "account_id": getattr(record, "account_id", "-"),
            "stage": getattr(record, "stage", "-"),
        }
        if record.levelno >= logging.ERROR:
            payload["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = _extras(record)
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Colored single-line output for local work.

    HH:MM:SS.mmm LEVEL    req/account/stage logger: message {extra}
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        context = "/".join(
            str(getattr(record, attr, "-"))[:8] for attr in ("request_id", "account_id", "stage")
        )
        line = (
            f"{self.DIM}{stamp}{self.RESET} {color}{record.levelname:<8}{self.RESET} "
            f"{self.DIM}{context}{self.RESET} {record.name}: {record.getMessage()}"
        )
        extra = _extras(record)
        if extra:
            line += f" {self.DIM}{extra}{self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    service_name: str = "content-repurposer",
    log_level: str = "INFO",
    use_json: bool = False,
) -> logging.Logger:
    """
    Install the repurposer handler on the root logger.

    Called once from create_app with the LoggingSettings values. Replaces any
    handlers already on the root logger so reloads do not double-log.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JSONFormatter(service_name) if use_json else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for noisy in ("uvicorn.access", "httpx", "httpcore", "asyncio", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root.info(
        "Logging configured",
        extra={"log_level": logging.getLevelName(level), "json": use_json},
    )
    return root


def set_request_context(
    request_id: Optional[str] = None,
    account_id: Optional[str] = None,
    stage: Optional[str] = None,
) -> None:
    """Update the context of the current task; None leaves a field as is."""
    if request_id is not None:
        _request_id.set(request_id)
    if account_id is not None:
        _account_id.set(account_id)
    if stage is not None:
        _stage.set(stage)


def clear_request_context() -> None:
    for var in (_request_id, _account_id, _stage):
        var.set(None)


class Timer:
    """
    Time a block and log how long it took.

        with Timer("repurpose_generation", logger, logging.INFO) as timer:
            generation = await router.dispatch(...)
        timer.elapsed_ms
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.elapsed_ms = 0.0
        self._started = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        if self.logger is not None:
            self.logger.log(
                self.log_level,
                "%s %s in %.2fms",
                self.name,
                "completed" if exc_type is None else "failed",
                self.elapsed_ms,
                extra={"operation": self.name, "duration_ms": round(self.elapsed_ms, 2)},
            )
