"""Structured event logging for cellform.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from cellform.logging.events import (
    CellformEvent,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_batch_event,
    reset_sink,
    set_project_dir,
    truncate_context,
)
from cellform.logging.sink import EventSink

__all__ = [
    "CellformEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "make_batch_event",
    "reset_sink",
    "set_project_dir",
    "truncate_context",
]
