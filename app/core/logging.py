"""
Structured Logging Infrastructure

Every record carries the correlation id of the request / Celery task and,
while a delivery is being processed, the event_id from its envelope. In
production records are written as one JSON object per line.
"""
import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
# מזהה האירוע שבעיבוד כרגע (event_id מה-envelope)
event_id_var: ContextVar[str] = ContextVar("event_id", default="")

_service_name = "customer-service-async"


class JSONFormatter(logging.Formatter):
    """One JSON document per record"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": _service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, var in (("correlation_id", correlation_id_var), ("event_id", event_id_var)):
            value = var.get()
            if value:
                log_entry[key] = value

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_entry["extra"] = extra_data

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept extra_data={...}"""

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args,
        exc_info=None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        if extra_data:
            extra = {**(extra or {}), "extra_data": extra_data}
        super()._log(
            level, msg, args,
            exc_info=exc_info, extra=extra, stack_info=stack_info, stacklevel=stacklevel,
        )


logging.setLoggerClass(StructuredLogger)


class ContextFilter(logging.Filter):
    """Adds correlation_id and event_id attributes for the text format"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.event_id = event_id_var.get() or "-"
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    app_name: str = "customer-service-async"
) -> None:
    """
    Configure application logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines for production, a readable line format otherwise
        app_name: Service name written on every record
    """
    global _service_name
    _service_name = app_name

    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s "
            "| [%(correlation_id)s] [%(event_id)s] | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        handler.addFilter(ContextFilter())

    root_logger.addHandler(handler)

    for noisy in ("httpx", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)


def generate_correlation_id() -> str:
    """Generate a new correlation ID"""
    return uuid.uuid4().hex[:8]


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for current context"""
    cid = correlation_id or generate_correlation_id()
    correlation_id_var.set(cid)
    return cid


def get_correlation_id() -> str:
    """Current correlation ID; one is generated and kept if none is set"""
    cid = correlation_id_var.get()
    if not cid:
        cid = set_correlation_id()
    return cid


@contextmanager
def event_context(event_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with event_id"""
    token = event_id_var.set(event_id)
    try:
        yield
    finally:
        event_id_var.reset(token)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance"""
    return logging.getLogger(name)  # type: ignore


def log_async_operation(operation_name: str):
    """Log start, completion (with duration) and failure of a coroutine"""
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            started = time.monotonic()
            logger.debug(f"Starting {operation_name}", extra_data={"operation": operation_name})

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Failed {operation_name}: {e}",
                    extra_data={
                        "operation": operation_name,
                        "duration_seconds": round(time.monotonic() - started, 4),
                    },
                    exc_info=True
                )
                raise

            logger.info(
                f"Completed {operation_name}",
                extra_data={
                    "operation": operation_name,
                    "duration_seconds": round(time.monotonic() - started, 4),
                }
            )
            return result

        return wrapper
    return decorator
