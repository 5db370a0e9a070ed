"""NDJSON event files under ``<project>/logs``.

``events.ndjson`` receives every event; events emitted during a batch
check are also copied to ``batches/<batch_id>.ndjson``.  Appends hold an
exclusive ``flock`` and reads a shared one, so several ``cellform check``
processes can share a project.  Where ``fcntl`` is unavailable the files
are used unlocked.
"""

from __future__ import annotations

import json
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from cellform.logging.events import CellformEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None  # type: ignore[assignment]

# Batch ids become file names.
_BATCH_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
_MAX_QUERY_LIMIT = 2000


@contextmanager
def _locked(path: Path, flags: int, lock: int) -> Iterator[int]:
    fd = os.open(str(path), flags, 0o644)
    try:
        if fcntl is not None:
            fcntl.flock(fd, lock)
        yield fd
    finally:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class EventSink:
    """Writes events to, and queries, a project's ``logs`` directory."""

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(project_dir) / "logs"
        self.batches_dir = self.logs_dir / "batches"
        self.fsync = fsync
        self.tail_bytes = _DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes
        self.batches_dir.mkdir(parents=True, exist_ok=True)

    @property
    def global_log(self) -> Path:
        return self.logs_dir / "events.ndjson"

    def batch_log(self, batch_id: str) -> Path | None:
        """Path of the per-batch log, or None if *batch_id* is not file-name safe."""
        if not _BATCH_ID_RE.match(batch_id):
            return None
        return self.batches_dir / f"{batch_id}.ndjson"

    def write(self, event: CellformEvent, *, batch_id: str | None = None) -> None:
        """Append *event* to the global log, and to the batch log if given."""
        record = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        data = (record + "\n").encode("utf-8")

        self._append(self.global_log, data)
        batch_path = self.batch_log(batch_id) if batch_id else None
        if batch_path is not None:
            self._append(batch_path, data)

    def read_global(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        batch_id: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Return matching events from the global log, newest first.

        Only the last ``tail_bytes`` of the file are scanned.
        """
        wanted: dict[str, Any] = {}
        if level:
            wanted["level"] = level
        if event_type:
            wanted["event_type"] = event_type

        matches = []
        for event in reversed(self._load(self.global_log)):
            if any(event.get(key) != value for key, value in wanted.items()):
                continue
            if batch_id and (event.get("context") or {}).get("batch_id") != batch_id:
                continue
            matches.append(event)
            if len(matches) >= min(limit, _MAX_QUERY_LIMIT):
                break
        return matches

    def read_batch_log(self, batch_id: str) -> list[dict[str, Any]]:
        """Return every event of one batch, in the order they were written."""
        path = self.batch_log(batch_id)
        if path is None:
            return []
        return self._load(path)

    # ----------------------------------------------------------------------

    def _append(self, path: Path, data: bytes) -> None:
        with _locked(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, _lock_ex()) as fd:
            os.write(fd, data)
            if self.fsync:
                os.fsync(fd)

    def _load(self, path: Path) -> list[dict[str, Any]]:
        """Parse the tail of *path*; lines that are not valid JSON are dropped."""
        if not path.exists():
            return []
        events = []
        for line in self._tail(path).splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _tail(self, path: Path) -> str:
        with _locked(path, os.O_RDONLY, _lock_sh()) as fd:
            size = os.fstat(fd).st_size
            start = max(0, size - self.tail_bytes)
            os.lseek(fd, start, os.SEEK_SET)
            data = os.read(fd, size - start)
        if start > 0:
            # The first line was cut by the seek.
            data = data.partition(b"\n")[2]
        return data.decode("utf-8", errors="replace")


def _lock_ex() -> int:
    return fcntl.LOCK_EX if fcntl is not None else 0


def _lock_sh() -> int:
    return fcntl.LOCK_SH if fcntl is not None else 0
