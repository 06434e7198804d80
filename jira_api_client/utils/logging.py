import json
import logging
import sys
import time
from contextlib import contextmanager
from typing import IO, Any, Dict, Optional

# LogRecord attributes that are not caller-supplied context
_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "request_id"}

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset({"authorization", "password", "token", "api_token", "auth_token", "api_key", "secret"})

logger = logging.getLogger("jira_api_client")


class RequestIDFilter(logging.Filter):
    """Guarantee ``record.request_id`` so formats can always reference it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = None
        return True


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through ``extra=``, with credentials masked."""
    return {
        key: (REDACTED if key.lower() in SENSITIVE_KEYS else value)
        for key, value in record.__dict__.items()
        if key not in _RECORD_FIELDS and not key.startswith("_")
    }


class ContextFormatter(logging.Formatter):
    """Plain text line followed by ``key=value`` pairs from the record's extras."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        context = record_context(record)
        if context:
            data["context"] = context
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO", fmt: str = "text", stream: Optional[IO[str]] = None) -> None:
    """
    Install a single root handler for the service, the CLI and the uvicorn loggers.

    ``fmt`` is "text" (timestamp, level, logger, message, request_id and extras)
    or "json". httpx/httpcore stay at WARNING unless DEBUG is requested, since
    they log every request at INFO.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    if fmt.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            ContextFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s request_id=%(request_id)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
    handler.addFilter(RequestIDFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(log_level)
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.setLevel(log_level)
        uv_logger.handlers = [handler]
        uv_logger.propagate = False

    wire_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(wire_level)


# PUBLIC_INTERFACE
@contextmanager
def timed_log_debug(
    message: str,
    request_id: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
    log: Optional[logging.Logger] = None,
):
    """
    Time the enclosed block and emit ``message`` at debug level with ``duration_ms``.

        with timed_log_debug("jira_http_request", request_id=rid, extra={"method": "GET"}, log=self.logger):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        data: Dict[str, Any] = {"request_id": request_id, "duration_ms": int((time.perf_counter() - start) * 1000)}
        if extra:
            data.update(extra)
        (log or logger).debug(message, extra=data)
