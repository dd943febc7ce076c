from __future__ import annotations

"""
hunterkit.core.log
==================

Structured logging for the hunter on top of stdlib `logging`:
- per-cycle context (cycle_id, task_id, ip_version) carried in contextvars;
- JSON formatter for collectors, compact human formatter for terminals;
- a LoggerAdapter that turns keyword arguments into record extras.

Library loggers stay silent until an application calls `configure_from_env()`
or `enable_stdout_logging()`.
"""

import contextvars
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
]

_ROOT_LOGGER: Final[str] = "hunterkit"
_STREAM_HANDLER_NAME: Final[str] = "_hunterkit_stream_handler"
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})

# ---------- Context ----------

_ctx_var: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("hunterkit_log_ctx", default=None)


@contextmanager
def log_context(**fields: Any):
    """Add fields to the log context for the duration of the block (None values are dropped)."""
    token = _ctx_var.set({**(_ctx_var.get() or {}), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _ctx_var.reset(token)


# ---------- Formatters ----------

# attributes every LogRecord carries; anything else on a record came in via `extra`
_RECORD_ATTRS: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def _iso_utc(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: envelope, message, context, extras and error info."""

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg

        ctx = _ctx_var.get()
        if ctx:
            out.update(ctx)

        for k, v in record.__dict__.items():
            if k not in _RECORD_ATTRS and k not in out:
                out[k] = v

        if record.exc_info:
            exc_type, exc, _tb = record.exc_info
            err = out.setdefault("error", {})
            err["type"] = exc_type.__name__ if exc_type else "Exception"
            err["message"] = str(exc) if exc else None
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)

        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Single-line formatter for local runs; shows the cycle/task context inline."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    _CTX_KEYS: ClassVar[tuple[str, ...]] = ("cycle_id", "task_id", "ip_version")

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        ctx = _ctx_var.get() or {}
        shown = [f"{k}={ctx[k]}" for k in self._CTX_KEYS if ctx.get(k) is not None]
        event = record.__dict__.get("event")
        if event:
            shown.insert(0, f"event={event}")
        if shown:
            line += "  [" + ", ".join(shown) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _FieldsAdapter(logging.LoggerAdapter):
    """
    Accept arbitrary keyword fields:
        log.info("pipeline.fetch.ok", event="pipeline.fetch.ok", tasks=3)
    Unknown kwargs are moved into `extra`; names clashing with LogRecord
    attributes are prefixed with `field_`.
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        if not isinstance(extra, dict):
            extra = {}
        for key in [k for k in kwargs if k not in self._passthrough]:
            value = kwargs.pop(key)
            name = f"field_{key}" if key in _RECORD_ATTRS else key
            extra.setdefault(name, value)
        kwargs["extra"] = extra
        return msg, kwargs


# ---------- Configuration ----------

_bootstrapped = False


def _bootstrap() -> None:
    global _bootstrapped
    if _bootstrapped:
        return
    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.NullHandler) for h in root.handlers):
        root.addHandler(logging.NullHandler())
    _bootstrapped = True


def _level_of(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid level name: {level!r}")
    return resolved


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """Namespaced adapter under the `hunterkit` logger tree."""
    _bootstrap()
    base = logging.getLogger(_ROOT_LOGGER)
    return _FieldsAdapter(base.getChild(name) if name else base, {})


def enable_stdout_logging(
    *,
    level: int | str = logging.DEBUG,
    json_output: bool = True,
    pretty: bool = False,
    include_stack: bool = False,
) -> None:
    """Attach (or replace) the stdout handler; `pretty` wins over `json_output`."""
    lvl = _level_of(level)
    _bootstrap()
    disable_stdout_logging()

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_STREAM_HANDLER_NAME)
    handler.setLevel(lvl)
    handler.setFormatter(fmt)
    logging.getLogger(_ROOT_LOGGER).addHandler(handler)


def disable_stdout_logging() -> None:
    root = logging.getLogger(_ROOT_LOGGER)
    for h in list(root.handlers):
        if h.get_name() == _STREAM_HANDLER_NAME:
            root.removeHandler(h)


def configure_from_env() -> None:
    """
    Entry-point helper. Reads:
      - HUNTERKIT_LOG_STDOUT=1   attach a stdout handler
      - HUNTERKIT_LOG_LEVEL=INFO
      - HUNTERKIT_LOG_PRETTY=1   human formatter instead of JSON
      - HUNTERKIT_LOG_STACK=1    include tracebacks in JSON output
    """
    level = os.getenv("HUNTERKIT_LOG_LEVEL", "INFO")
    _bootstrap()
    logging.getLogger(_ROOT_LOGGER).setLevel(_level_of(level))
    if os.getenv("HUNTERKIT_LOG_STDOUT", "").lower() in _TRUTHY:
        pretty = os.getenv("HUNTERKIT_LOG_PRETTY", "").lower() in _TRUTHY
        enable_stdout_logging(
            level=level,
            json_output=not pretty,
            pretty=pretty,
            include_stack=os.getenv("HUNTERKIT_LOG_STACK", "").lower() in _TRUTHY,
        )
    else:
        disable_stdout_logging()


_bootstrap()
