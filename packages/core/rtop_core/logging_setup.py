"""Structured logging for rtop.

Every record rtop emits carries an ``event`` name and, optionally, a flat
``fields`` mapping. Build both with ``event_extra``::

    logger.info("telemetry provider unavailable", extra=event_extra("fetch_unavailable", cycle=3, kind="provider_unavailable"))

The file handler writes one JSON object per line with ``ts_utc``, ``level``,
``logger``, ``msg``, ``event`` and the fields merged at the top level (fields
never overwrite the base keys). Refresh cycles use a fixed vocabulary:

    cycle                 scheduler cycle number
    kind                  ``FetchError.kind`` of a failed cycle
    reason                failure detail
    changed               display entries a successful cycle rewrote
    duration_s            fetch plus mapping time
    cycles, successes, skipped_ticks, consecutive_failures
                          ``SchedulerStatus`` counters
    failures.<kind>       per-kind failure counters

``EventRing`` keeps the most recent rows in the same shape in memory so a
doctor bundle can ship them without re-reading the log files.
"""

from __future__ import annotations

import faulthandler
import json
import logging
import logging.handlers
import os
import platform
import sys
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping


_LOGGER_NAME = "rtop"
_BASE_KEYS = ("ts_utc", "level", "logger", "msg", "event", "exc")
_FAULT_FILE = None


def config_root() -> Path:
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "rtop"
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Application Support" / "rtop"
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / "rtop"


def log_dir() -> Path:
    path = config_root() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def event_extra(event: str, **fields: Any) -> dict[str, Any]:
    return {"event": event, "fields": fields}


def flatten_fields(fields: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys (``failures.malformed_payload``)."""
    out: dict[str, Any] = {}
    for key, value in fields.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            out.update(flatten_fields(value, prefix=f"{name}."))
        else:
            out[name] = value
    return out


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = getattr(record, "fields", None)
    if not isinstance(fields, Mapping):
        return {}
    return flatten_fields(fields)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts_utc": _utc_now(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        if hasattr(record, "event"):
            payload["event"] = getattr(record, "event")
        for key, value in _record_fields(record).items():
            if key not in _BASE_KEYS:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=True, default=str)


class ConsoleFormatter(logging.Formatter):
    """``LEVEL [event] message key=value ...`` for a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        parts = [record.levelname]
        event = getattr(record, "event", None)
        if event:
            parts.append(f"[{event}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in sorted(_record_fields(record).items()) if key != "reason")
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class EventRing:
    """Bounded, thread-safe ring of structured event rows."""

    def __init__(self, maxlen: int = 1000) -> None:
        self._rows: deque[dict[str, Any]] = deque(maxlen=max(1, int(maxlen)))
        self._lock = threading.Lock()

    @property
    def maxlen(self) -> int:
        return self._rows.maxlen or 0

    def record(self, event: str, **fields: Any) -> dict[str, Any]:
        row: dict[str, Any] = {"ts_utc": _utc_now(), "event": event}
        row.update(fields)
        with self._lock:
            self._rows.append(row)
        return row

    def recent(self, limit: int | None = None) -> list[dict[str, Any]]:
        with self._lock:
            rows = list(self._rows)
        if limit is None:
            return rows
        return rows[-limit:] if limit > 0 else []

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


def configure_logging(keep_files: int = 7, console: bool = True, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger(_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    path = log_dir() / "rtop.log"
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=max(2, keep_files),
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        stream_handler.setFormatter(ConsoleFormatter())
        logger.addHandler(stream_handler)

    logger.info("logging configured", extra=event_extra("logging_configured", path=str(path)))
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if name:
        return logging.getLogger(f"{_LOGGER_NAME}.{name}")
    return logging.getLogger(_LOGGER_NAME)


def _install_fault_handler(logger: logging.Logger) -> None:
    global _FAULT_FILE
    if _FAULT_FILE is not None:
        return
    _FAULT_FILE = (log_dir() / "fault.log").open("a", encoding="utf-8")
    faulthandler.enable(file=_FAULT_FILE, all_threads=True)
    logger.info("fault handler enabled", extra=event_extra("fault_handler_enabled"))


def install_crash_hooks() -> None:
    logger = get_logger()

    def _log_uncaught(exc_type, exc_value, exc_tb) -> None:
        crash_id = str(uuid.uuid4())
        logger.critical(
            f"uncaught exception crash_id={crash_id}",
            exc_info=(exc_type, exc_value, exc_tb),
            extra=event_extra("uncaught_exception", crash_id=crash_id),
        )

    def _thread_hook(args: threading.ExceptHookArgs) -> None:
        crash_id = str(uuid.uuid4())
        logger.critical(
            f"thread exception crash_id={crash_id} thread={getattr(args.thread, 'name', None)}",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            extra=event_extra("thread_exception", crash_id=crash_id),
        )

    sys.excepthook = _log_uncaught
    threading.excepthook = _thread_hook
    _install_fault_handler(logger)
