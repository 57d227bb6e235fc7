"""
Logging, request correlation and lightweight timing metrics.

Every log line carries the correlation id of the request that produced it,
so a postback or a report request can be followed from the middleware down
to the sheet fetches and ledger writes it caused.

Usage:
    from core.observability import setup_logging, get_logger, correlation_context

    setup_logging(level="INFO", json_format=True)   # once, at startup
    logger = get_logger(__name__)                   # per module

    with correlation_context(request_id):
        logger.info("Revenue recorded", extra={"buyer": "Artur", "amount": 100})
"""
import asyncio
import functools
import json
import logging
import time
import uuid
from collections import Counter, deque
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, Iterator, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime", "taskName",
}

# Client libraries that chatter at INFO/DEBUG on every sheet fetch
_NOISY_LOGGERS = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth.transport.requests",
    "urllib3",
    "httpx",
    "uvicorn.access",
)


# ═══════════════════════════════════════════════════════════════════════════════
# CORRELATION IDS
# ═══════════════════════════════════════════════════════════════════════════════

def generate_correlation_id() -> str:
    """Short random id, enough to tell concurrent requests apart in logs."""
    return uuid.uuid4().hex[:8]


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the block; the previous one is restored on exit."""
    cid = correlation_id or generate_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTERS
# ═══════════════════════════════════════════════════════════════════════════════

def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cid = get_correlation_id()
        if cid:
            entry["correlation_id"] = cid
        entry.update(_extra_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format for local runs:

        2024-01-02 12:00:00 - INFO     - core.ledger [a1b2c3d4] - Revenue recorded | {'buyer': 'Artur'}
    """

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        cid = get_correlation_id()
        origin = f"{record.name} [{cid}]" if cid else record.name

        line = f"{when} - {record.levelname:8} - {origin} - {record.getMessage()}"

        extras = _extra_fields(record)
        if extras:
            line = f"{line} | {extras}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_libs: bool = False
) -> None:
    """
    Replace root handlers with a single stderr handler.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ...)
        json_format: JSON lines instead of the console format
        include_libs: Keep Google client / HTTP library logs at `level`
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    if not include_libs:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Measure a block, feed the duration to `metrics`, optionally log it.

        with Timer("fetch_sheet[March]", logger) as t:
            rows = await provider.fetch_rows(handle, "March")
        t.elapsed_ms
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, warn_threshold_ms: float = 1000):
        self.name = name
        self.logger = logger
        self.warn_threshold_ms = warn_threshold_ms
        self.elapsed_ms: float = 0.0
        self._started: float = 0.0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info) -> None:
        self.elapsed_ms = (time.perf_counter() - self._started) * 1000
        metrics.record_timing(self.name, self.elapsed_ms)

        if self.logger is None:
            return
        slow = self.elapsed_ms > self.warn_threshold_ms
        self.logger.log(
            logging.WARNING if slow else logging.DEBUG,
            f"{self.name} completed",
            extra={"duration_ms": round(self.elapsed_ms, 2)},
        )


def timed(name: Optional[str] = None, warn_threshold_ms: float = 1000):
    """Time every call of a coroutine function with `Timer`."""

    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"timed() expects a coroutine function, got {func!r}")

        label = name or func.__name__
        log = get_logger(func.__module__)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with Timer(label, log, warn_threshold_ms):
                return await func(*args, **kwargs)

        return wrapper

    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════════

class MetricsCollector:
    """
    Process-local counters exposed by /api/metrics.

    Requests are counted per "METHOD /path", errors per type, and only the
    most recent `max_samples` durations are kept per operation.
    """

    def __init__(self, max_samples: int = 100):
        self._max_samples = max_samples
        self._requests: Counter = Counter()
        self._errors: Counter = Counter()
        self._timings: Dict[str, Deque[float]] = {}

    def record_request(self, endpoint: str) -> None:
        self._requests[endpoint] += 1

    def record_error(self, error_type: str) -> None:
        self._errors[error_type] += 1

    def record_timing(self, operation: str, duration_ms: float) -> None:
        if operation not in self._timings:
            self._timings[operation] = deque(maxlen=self._max_samples)
        self._timings[operation].append(duration_ms)

    @staticmethod
    def _summarize(samples: Deque[float]) -> Dict[str, Any]:
        ordered = sorted(samples)
        return {
            "count": len(ordered),
            "avg_ms": round(sum(ordered) / len(ordered), 2),
            "min_ms": round(ordered[0], 2),
            "max_ms": round(ordered[-1], 2),
            "p50_ms": round(ordered[len(ordered) // 2], 2),
        }

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self._requests),
            "errors": dict(self._errors),
            "timing": {
                operation: self._summarize(samples)
                for operation, samples in self._timings.items()
                if samples
            },
        }

    def reset(self) -> None:
        self._requests.clear()
        self._errors.clear()
        self._timings.clear()


metrics = MetricsCollector()
