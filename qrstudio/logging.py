"""QR Studio structured logging: audit events, render-pass context and call tracing."""

import functools
import inspect
import json
import logging
import sys
import time
import traceback
from datetime import datetime, timezone

# Custom AUDIT level (between WARNING=30 and ERROR=40)
AUDIT = 35
logging.addLevelName(AUDIT, "AUDIT")

ROOT_LOGGER = "qrstudio"


def _truncate(value: object, max_len: int = 80) -> str:
    """Truncate a string for safe logging (data URLs get long fast)."""
    s = str(value)
    if len(s) > max_len:
        return s[:max_len] + "..."
    return s


def _timestamp(record: logging.LogRecord, fmt: str) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(fmt)[:-3]


class JsonFormatter(logging.Formatter):
    """Outputs one JSON object per line for machine parsing."""

    def format(self, record):
        entry = {
            "ts": _timestamp(record, "%Y-%m-%dT%H:%M:%S.%f") + "Z",
            "level": record.levelname,
            "src": record.name,
        }
        if hasattr(record, "event"):
            entry["event"] = record.event
        if hasattr(record, "pass_id"):
            entry["pass"] = record.pass_id
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = round(record.duration_ms, 2)
        if hasattr(record, "ctx"):
            entry["ctx"] = record.ctx
        if record.getMessage() and not hasattr(record, "event"):
            entry["msg"] = record.getMessage()
        if record.exc_info and record.exc_info[1]:
            entry["traceback"] = traceback.format_exception(*record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable colored console output."""

    COLORS = {
        "DEBUG": "\033[36m",    # cyan
        "INFO": "\033[32m",     # green
        "AUDIT": "\033[35m",    # magenta
        "WARNING": "\033[33m",  # yellow
        "ERROR": "\033[31m",    # red
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, "")
        parts = [
            _timestamp(record, "%H:%M:%S.%f"),
            f"{color}{record.levelname:5s}{self.RESET}",
            f"[{record.name}]",
        ]

        if hasattr(record, "pass_id"):
            parts.append(f"#{record.pass_id}")

        if hasattr(record, "event"):
            parts.append(record.event)

        if hasattr(record, "duration_ms"):
            parts.append(f"({record.duration_ms:.1f}ms)")

        if hasattr(record, "ctx") and record.ctx:
            parts.append(" ".join(f"{k}={_truncate(v)}" for k, v in record.ctx.items()))
        elif record.getMessage() and not hasattr(record, "event"):
            parts.append(record.getMessage())

        if record.exc_info and record.exc_info[1]:
            parts.append(f"\n{''.join(traceback.format_exception(*record.exc_info))}")

        return " ".join(parts)


def setup_logging(level: str = "INFO", log_file: str | None = None, json_format: bool = False):
    """Configure the root qrstudio logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, AUDIT).
        log_file: If set, write JSON logs to this file path.
        json_format: If True, use JSON format on console too.
    """
    root = logging.getLogger(ROOT_LOGGER)
    level_name = level.upper()
    root.setLevel(AUDIT if level_name == "AUDIT" else getattr(logging, level_name, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JsonFormatter() if json_format else ConsoleFormatter())
    root.addHandler(console)

    # File handler (always JSON)
    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(JsonFormatter())
        root.addHandler(fh)


def get_logger(module_name: str) -> logging.Logger:
    """Get a logger scoped under the qrstudio namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{module_name}")


def _emit(log: logging.Logger, level: int, event: str, ctx: dict, **extra) -> None:
    if not log.isEnabledFor(level):
        return
    record = log.makeRecord(
        name=log.name, level=level, fn="", lno=0,
        msg="", args=(), exc_info=extra.pop("exc_info", None),
    )
    record.event = event
    record.ctx = ctx
    for key, value in extra.items():
        if value is not None:
            setattr(record, key, value)
    log.handle(record)


def audit(event: str, logger: logging.Logger | None = None, pass_id: int | None = None, **context):
    """Emit an AUDIT-level structured log entry.

    Args:
        event: Machine-readable event tag (e.g., "logo.composited").
        logger: Logger to use. Defaults to qrstudio root.
        pass_id: Render pass the event belongs to, if any.
        **context: Key-value pairs for the event context.
    """
    _emit(logger or logging.getLogger(ROOT_LOGGER), AUDIT, event, context, pass_id=pass_id)


def _describe_args(args, kwargs) -> dict:
    safe_args = []
    for a in args:
        s = repr(a)
        if len(s) > 100 or "Image" in type(a).__name__:
            safe_args.append(f"<{type(a).__name__}>")
        else:
            safe_args.append(_truncate(s, 80))
    safe_kwargs = {k: _truncate(repr(v), 80) for k, v in kwargs.items()}
    return {"args": safe_args, "kwargs": safe_kwargs}


def _describe_result(result) -> str:
    if isinstance(result, (str, int, float, bool)):
        return _truncate(repr(result), 80)
    if isinstance(result, (list, tuple)):
        return f"{type(result).__name__}[{len(result)}]"
    if isinstance(result, dict):
        return f"dict[{len(result)} keys]"
    return type(result).__name__


def trace(func=None, *, logger_name: str | None = None):
    """Decorator that auto-logs function entry/exit with timing.

    - DEBUG on entry with arguments
    - INFO on exit with duration
    - ERROR on exception with traceback and duration

    Coroutine functions are traced across their awaits, so the reported
    duration includes time spent suspended.
    """
    def decorator(fn):
        _logger_name = logger_name or fn.__module__.replace(f"{ROOT_LOGGER}.", "")
        log = get_logger(_logger_name)
        fn_name = fn.__name__

        def _enter(args, kwargs):
            if log.isEnabledFor(logging.DEBUG):
                _emit(log, logging.DEBUG, f"{fn_name}.enter", _describe_args(args, kwargs))
            return time.perf_counter()

        def _done(start, result):
            _emit(log, logging.INFO, f"{fn_name}.done", {"result": _describe_result(result)},
                  duration_ms=(time.perf_counter() - start) * 1000)

        def _error(start):
            _emit(log, logging.ERROR, f"{fn_name}.error", {"function": fn_name},
                  duration_ms=(time.perf_counter() - start) * 1000, exc_info=sys.exc_info())

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def async_wrapper(*args, **kwargs):
                start = _enter(args, kwargs)
                try:
                    result = await fn(*args, **kwargs)
                except Exception:
                    _error(start)
                    raise
                _done(start, result)
                return result

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            start = _enter(args, kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception:
                _error(start)
                raise
            _done(start, result)
            return result

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
