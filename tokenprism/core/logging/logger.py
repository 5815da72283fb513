"""JSON-lines logging for the refresh loop, the read path and the WebSocket stream.

Every event carries a ``trace_id``. Events emitted inside a refresh cycle or
on behalf of one client also carry ``cycle_id`` or ``connection_id`` at the top
level so one cycle or one connection can be followed with a single filter.
"""

from __future__ import annotations

import json
import sys
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Iterator, TextIO
from uuid import uuid4

from loguru import logger

TOP_LEVEL_FIELDS = ("trace_id", "source", "cycle_id", "connection_id")

_bound: ContextVar[dict[str, Any]] = ContextVar("tokenprism_log_fields", default={})


def _attach_context(record: dict[str, Any]) -> None:
    extra = record["extra"]
    for key, value in _bound.get().items():
        extra.setdefault(key, value)
    if not extra.get("trace_id"):
        extra["trace_id"] = uuid4().hex


def render(record: dict[str, Any]) -> str:
    """Serialise a loguru record to one JSON line."""
    extra = dict(record["extra"])
    event: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
    }
    for name in TOP_LEVEL_FIELDS:
        if extra.get(name) is not None:
            event[name] = extra.pop(name)
        else:
            extra.pop(name, None)
    if extra:
        event["context"] = extra
    if record["exception"] is not None:
        event["exception"] = "".join(_format_exception(record["exception"]))
    return json.dumps(event, default=str)


def _format_exception(exception: Any) -> list[str]:
    return traceback.format_exception(exception.type, exception.value, exception.traceback)


class _JsonSink:
    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def __call__(self, message: Any) -> None:
        self.stream.write(render(message.record) + "\n")
        self.stream.flush()


class _JsonFileSink:
    def __init__(self, path: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, message: Any) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(render(message.record) + "\n")


def configure_logging(level: str = "INFO", *, console_stream: TextIO | None = None, file_path: str | None = None) -> None:
    """Replace every loguru handler with JSON sinks at ``level``.

    Args:
        level: minimum level name
        console_stream: stream for console output, stdout when omitted
        file_path: also append JSON lines to this file
    """
    level = level.upper()
    handlers: list[dict[str, Any]] = [{"sink": _JsonSink(console_stream or sys.stdout), "level": level}]
    if file_path:
        handlers.append({"sink": _JsonFileSink(file_path), "level": level})
    logger.configure(handlers=handlers, patcher=_attach_context)


@contextmanager
def log_context(*, trace_id: str | None = None, **fields: Any) -> Iterator[str]:
    """Attach ``fields`` to every event logged inside the block.

    Nested blocks inherit the outer fields. A ``trace_id`` is generated
    when neither this block nor an enclosing one supplies one.
    """
    outer = _bound.get()
    active = trace_id or outer.get("trace_id") or uuid4().hex
    token = _bound.set({**outer, **fields, "trace_id": active})
    try:
        yield active
    finally:
        _bound.reset(token)


__all__ = ["TOP_LEVEL_FIELDS", "configure_logging", "log_context", "logger", "render"]
