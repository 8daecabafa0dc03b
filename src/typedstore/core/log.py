from __future__ import annotations

"""
typedstore.core.log
===================

Structured logging for the data-access layer, built on stdlib `logging`:
- Context propagation via contextvars (index, db_index, operation).
- JSON formatter for services; human formatter for local debugging.
- LoggerAdapter that accepts arbitrary keyword fields.
- Silent by default: the library logger only carries a NullHandler until an
  application calls `enable_stdout_logging()` or `configure_from_env()`.
"""

import contextvars
import json
import logging
import os
import sys
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
    "set_level",
    "swallow",
    "warn_once",
]

# ---------- Context ----------

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "typedstore_log_ctx", default=None
)


def _ctx_copy() -> dict[str, Any]:
    ctx = _log_context.get()
    return dict(ctx) if ctx else {}


@contextmanager
def log_context(**fields: Any):
    """
    Temporarily add fields to the structured log context.
    Restores the previous context on exit. None values are dropped.
    """
    token = _log_context.set({**_ctx_copy(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _log_context.reset(token)


# ---------- Formatters ----------

_STD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "asctime",
        "taskName",
    }
)


def _iso_utc_ms(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, then context fields,
    then keyword extras, then error info when an exception is attached.
    """

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc_ms(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg

        ctx = _log_context.get()
        if ctx:
            out.update(ctx)

        for k, v in record.__dict__.items():
            if k in _STD_ATTRS or k in out:
                continue
            out[k] = v

        if record.exc_info:
            exc_type = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            err = out.setdefault("error", {})
            err["type"] = exc_type
            err["message"] = str(record.exc_info[1]) if record.exc_info[1] else None
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)

        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Compact formatter for local debugging."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        s = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        ctx = _log_context.get()
        if ctx:
            keys = ("index", "db_index", "op")
            compact = {k: ctx.get(k) for k in keys if ctx.get(k) is not None}
            if compact:
                s += "  [" + ", ".join(f"{k}={v}" for k, v in compact.items()) + "]"
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


class ContextFilter(logging.Filter):
    """
    Copy contextvars onto records reaching a handler. Must sit on the handler:
    logger-level filters do not run for records propagated from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _log_context.get()
        if ctx:
            for k, v in ctx.items():
                if k not in record.__dict__:
                    record.__dict__[k] = v
        return True


class _KwExtraAdapter(logging.LoggerAdapter):
    """
    Moves unknown kwargs into `extra={...}` so call sites can write
        log.info("msg", event="store.set", key=key)
    Fields that collide with LogRecord attributes get a `field_` prefix.
    The active `log_context` fields are merged in too (explicit kwargs win),
    so every handler, caplog included, sees them on the record.
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        if not isinstance(extra, dict):
            extra = {}
        for k in [k for k in kwargs if k not in self._passthrough]:
            v = kwargs.pop(k)
            key = f"field_{k}" if k in _STD_ATTRS else k
            extra.setdefault(key, v)
        for k, v in _ctx_copy().items():
            extra.setdefault(f"field_{k}" if k in _STD_ATTRS else k, v)
        kwargs["extra"] = extra
        return msg, kwargs


_WARN_ONCE_SEEN: set[str] = set()
_WARN_ONCE_LOCK = threading.Lock()


def warn_once(
    logger: logging.Logger | logging.LoggerAdapter,
    code: str,
    msg: str,
    *,
    level: int = logging.WARNING,
    **extra: Any,
) -> None:
    """Log `msg` only the first time `code` is seen in this process."""
    with _WARN_ONCE_LOCK:
        if code in _WARN_ONCE_SEEN:
            return
        _WARN_ONCE_SEEN.add(code)
    adapter = logger if isinstance(logger, logging.LoggerAdapter) else _KwExtraAdapter(logger, {})
    adapter.log(level, msg, code=code, **extra)


# ---------- Public configuration API ----------

_ROOT_LOGGER_NAME = "typedstore"
_stdout_handler_key = "_typedstore_stdout_handler"
_configured = False


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """Namespaced logger adapter (child of `typedstore`) accepting keyword fields."""
    _bootstrap_minimal()
    base = logging.getLogger(_ROOT_LOGGER_NAME)
    return _KwExtraAdapter(base.getChild(name) if name else base, {})


def _bootstrap_minimal() -> None:
    global _configured
    if _configured:
        return
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    if not any(isinstance(h, logging.NullHandler) for h in lg.handlers):
        lg.addHandler(logging.NullHandler())
    _configured = True


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Invalid level name: {level!r}")
    return resolved


def set_level(level: int | str) -> None:
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(_resolve_level(level))


def enable_stdout_logging(
    *,
    level: int | str = logging.INFO,
    json_output: bool = True,
    include_stack: bool = False,
    pretty: bool = False,
) -> None:
    """Attach a stdout handler (JSON by default, human-readable with pretty=True)."""
    lvl = _resolve_level(level)
    _bootstrap_minimal()
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    disable_stdout_logging()

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    h = logging.StreamHandler(sys.stdout)
    h.set_name(_stdout_handler_key)
    h.setLevel(lvl)
    h.setFormatter(fmt)
    h.addFilter(ContextFilter())
    lg.addHandler(h)


def disable_stdout_logging() -> None:
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    for h in list(lg.handlers):
        if h.get_name() == _stdout_handler_key:
            lg.removeHandler(h)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes", "on")


def configure_from_env() -> None:
    """
    Honors:
      - TYPEDSTORE_LOG_STDOUT=1|true -> enable stdout
      - TYPEDSTORE_LOG_LEVEL=DEBUG|INFO|...
      - TYPEDSTORE_LOG_PRETTY=1 -> human formatter instead of JSON
      - TYPEDSTORE_LOG_STACK=1 -> include stack in JSON logs
    """
    level = os.getenv("TYPEDSTORE_LOG_LEVEL", "INFO")
    pretty = _env_flag("TYPEDSTORE_LOG_PRETTY")
    _bootstrap_minimal()
    set_level(level)
    if _env_flag("TYPEDSTORE_LOG_STDOUT"):
        enable_stdout_logging(
            level=level,
            json_output=not pretty,
            include_stack=_env_flag("TYPEDSTORE_LOG_STACK"),
            pretty=pretty,
        )
    else:
        disable_stdout_logging()


@contextmanager
def swallow(
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    level: int = logging.DEBUG,
    code: str,
    msg: str | None = None,
    extra: Mapping[str, Any] | None = None,
):
    """
    Replace `try/except: pass` with a logged suppression:
        with swallow(logger=log, code="store.lock.release", msg="release failed"):
            await provider.release(handle)
    """
    base = logger or get_logger("swallow")
    adapter = base if isinstance(base, logging.LoggerAdapter) else _KwExtraAdapter(base, {})
    try:
        yield
    except Exception as e:
        payload: dict[str, Any] = {"code": code}
        if extra:
            payload.update(extra)
        adapter.log(level, msg or "Suppressed exception", exc_info=e, **payload)


_bootstrap_minimal()
