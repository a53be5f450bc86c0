"""Logging setup and per-operation timing for the NoteVault facade.

Log records are diagnostic. Nothing in this module builds text for end users.
"""
import functools
import inspect
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = Path.home() / ".notevault" / "logs"
LOG_FILE_NAME = "notevault.log"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Call arguments worth echoing into START lines
CONTEXT_ARGUMENTS = ("resource_id", "title", "keyword", "name", "names")
MAX_CONTEXT_CHARS = 50

F = TypeVar("F", bound=Callable[..., Any])


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _owned_handlers(target: logging.Logger) -> List[logging.Handler]:
    return [h for h in target.handlers if getattr(h, "_notevault_handler", False)]


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: Union[int, str] = logging.INFO,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Path:
    """Send ``notevault`` log records to a rotating file under ``log_dir``.

    Handlers installed by an earlier call are closed and replaced, so the
    CLI and tests can call this repeatedly.

    Args:
        log_dir: Directory for ``notevault.log``; defaults to ~/.notevault/logs.
        level: Level name or number applied to the logger and its handlers.
        max_bytes: Size at which the file rotates.
        backup_count: Rotated files kept.
        console: Also echo records to stderr.

    Returns:
        The log directory actually used.
    """
    level = _resolve_level(level)
    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger("notevault")
    package_logger.setLevel(level)
    for handler in _owned_handlers(package_logger):
        package_logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = [
        RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._notevault_handler = True
        package_logger.addHandler(handler)

    package_logger.debug(f"Logging to {log_path / LOG_FILE_NAME} at level {level}")
    return log_path


class OperationStats:
    """Running totals for one facade operation."""

    def __init__(self):
        self.count = 0
        self.error_count = 0
        self.total_ms = 0.0
        self.min_ms: Optional[float] = None
        self.max_ms = 0.0
        self.last_error: Optional[str] = None
        self.last_error_time: Optional[datetime] = None

    def add(self, duration_ms: float, error: Optional[str] = None, failed: bool = False) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        if failed:
            self.error_count += 1
            self.last_error = error
            self.last_error_time = datetime.now(timezone.utc)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "success_count": self.count - self.error_count,
            "error_count": self.error_count,
            "avg_duration_ms": round(self.total_ms / self.count, 2) if self.count else 0,
            "min_duration_ms": round(self.min_ms or 0, 2),
            "max_duration_ms": round(self.max_ms, 2),
            "last_error": self.last_error,
            "last_error_time": (
                self.last_error_time.isoformat() if self.last_error_time else None
            ),
        }


class MetricsCollector:
    """In-process counters and timings keyed by operation name. Thread-safe."""

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()
        self._started = datetime.now(timezone.utc)

    def record_operation(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.add(duration_ms, error=error, failed=not success)

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {name: stats.as_dict() for name, stats in self._stats.items()}

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "uptime_seconds": (datetime.now(timezone.utc) - self._started).total_seconds(),
                "total_operations": sum(s.count for s in self._stats.values()),
                "total_errors": sum(s.error_count for s in self._stats.values()),
                "operations_tracked": sorted(self._stats),
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
            self._started = datetime.now(timezone.utc)


metrics = MetricsCollector()


@contextmanager
def timed_operation(operation: str, **context) -> Iterator[Dict[str, Any]]:
    """Log START and END lines at DEBUG around a block and record its timing.

    The yielded dict is echoed into the END line, so the block can report
    things like ``result_count``.
    """
    call_id = uuid.uuid4().hex[:8]
    details = ", ".join(f"{k}={v}" for k, v in context.items())
    logger.debug(f"[{call_id}] START {operation} ({details})")

    outcome: Dict[str, Any] = {}
    error: Optional[str] = None
    started = time.perf_counter()
    try:
        yield outcome
    except Exception as e:
        error = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_operation(operation, duration_ms, error is None, error)
        status = "OK" if error is None else f"ERROR: {error}"
        extra = ", ".join(f"{k}={v}" for k, v in outcome.items())
        logger.debug(f"[{call_id}] END {operation} ({duration_ms:.2f}ms) [{status}] {extra}")


def _call_context(signature: Optional[inspect.Signature], args, kwargs) -> Dict[str, Any]:
    if signature is None:
        return {}
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    context = {}
    for name in CONTEXT_ARGUMENTS:
        if name in bound.arguments:
            value = bound.arguments[name]
            context[name] = value[:MAX_CONTEXT_CHARS] if isinstance(value, str) else value
    return context


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Wrap a function in ``timed_operation``.

    Identifying arguments (resource id, title, keyword, tag names) are logged
    whether they were passed by position or by keyword.
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__
        try:
            signature: Optional[inspect.Signature] = inspect.signature(func)
        except (TypeError, ValueError):
            signature = None

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with timed_operation(name, **_call_context(signature, args, kwargs)) as op:
                result = func(*args, **kwargs)
                if isinstance(result, (list, tuple, dict)):
                    op["result_count"] = len(result)
                elif result is not None:
                    op["has_result"] = True
                return result

        return wrapper  # type: ignore
    return decorator
