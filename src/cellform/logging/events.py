"""Event schema and the process-wide emit helpers.

Timestamps are UTC ISO-8601 with a ``Z`` suffix.  Nothing is recorded
until :func:`set_project_dir` attaches a sink; after that, ``emit`` and
its level helpers append to the project's ``logs`` directory.  They
never raise: a failing write is reported on stderr at most once a minute.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    parse_failed = "parse_failed"
    batch_started = "batch_started"
    batch_completed = "batch_completed"
    batch_aborted = "batch_aborted"


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256
_TRUNCATED = "...[truncated]"


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy *context*, cutting every string longer than 256 characters.

    Formulas are arbitrary user input, so event context stays bounded.
    Nested dicts and lists are walked.
    """
    return {key: _shorten(value) for key, value in context.items()}


def _shorten(value: Any) -> Any:
    if isinstance(value, str):
        return value if len(value) <= _MAX_VALUE_LEN else value[:_MAX_VALUE_LEN] + _TRUNCATED
    if isinstance(value, dict):
        return truncate_context(value)
    if isinstance(value, (list, tuple)):
        return [_shorten(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CellformEvent(BaseModel):
    """One line of ``logs/events.ndjson``."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_batch_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    batch_id: str,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> CellformEvent:
    """Build an event whose context always carries ``batch_id``."""
    return CellformEvent(
        level=level,
        event_type=event_type,
        message=message,
        context={"batch_id": batch_id, **(extra or {})},
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Process-wide sink
# ---------------------------------------------------------------------------

_sink: Any = None  # EventSink | None
_project_dir: Path | None = None


def set_project_dir(project_dir: Path | str) -> None:
    """Attach an :class:`~cellform.logging.sink.EventSink` for *project_dir*.

    ``logging_enabled: false`` in ``cellform.yaml`` leaves logging off;
    ``logging_fsync`` and ``logging_tail_bytes`` configure the sink.
    """
    global _sink, _project_dir
    from cellform.config import load_config
    from cellform.logging.sink import EventSink

    _project_dir = Path(project_dir)
    config = load_config(_project_dir)
    if not config.get("logging_enabled", True):
        _sink = None
        return

    tail_bytes = config.get("logging_tail_bytes")
    _sink = EventSink(
        _project_dir,
        fsync=bool(config.get("logging_fsync", False)),
        tail_bytes=None if tail_bytes is None else int(tail_bytes),
    )


def reset_sink() -> None:
    """Detach the sink; events are discarded until the next ``set_project_dir``."""
    global _sink, _project_dir
    _sink = None
    _project_dir = None


_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _warn_once_a_minute(msg: str) -> None:
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    print(f"[cellform] {msg}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Emit helpers
# ---------------------------------------------------------------------------


def emit(event: CellformEvent, *, batch_id: str | None = None) -> None:
    """Record *event*, also under *batch_id* when given.  Never raises."""
    sink = _sink
    if sink is None:
        return
    try:
        sink.write(
            event.model_copy(update={"context": truncate_context(event.context)}),
            batch_id=batch_id,
        )
    except Exception:
        _warn_once_a_minute(f"logging failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
    batch_id: str | None,
) -> None:
    emit(
        CellformEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        batch_id=batch_id,
    )


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    batch_id: str | None = None,
) -> None:
    _emit_at(EventLevel.info, event_type, message, context, None, batch_id)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    batch_id: str | None = None,
) -> None:
    _emit_at(EventLevel.warning, event_type, message, context, error_code, batch_id)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    batch_id: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code, batch_id)
