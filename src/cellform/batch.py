"""Batch formula checking.

Parses many formulas, collecting one outcome per formula instead of
stopping at the first error.  Formulas are loaded from a YAML file
(mapping of name -> formula, or a list) or a plain text file with one
formula per line.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

import yaml

from cellform.config import strip_prefix
from cellform.formulas.ast import extract_refs, to_formula
from cellform.formulas.parser import ParseOutcome, try_parse
from cellform.logging.events import (
    EventLevel,
    EventType,
    emit,
    emit_warning,
    make_batch_event,
)

logger = logging.getLogger(__name__)


def load_formulas(path: Path) -> list[tuple[str, str]]:
    """Load named formulas from *path*.

    ``.yaml``/``.yml`` files hold either a mapping ``name: formula`` or a
    list of formulas (named ``#1``, ``#2``, ...).  Any other file is read
    as text: one formula per line, blank lines and ``#`` comments skipped,
    named ``line N``.

    Raises:
        ValueError: If a YAML file holds neither a mapping nor a list.
    """
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(path.read_text()) or {}
        if isinstance(data, dict):
            return [(str(k), str(v)) for k, v in data.items()]
        if isinstance(data, list):
            return [(f"#{i}", str(v)) for i, v in enumerate(data, start=1)]
        raise ValueError(f"{path} must contain a mapping or a list of formulas")

    formulas: list[tuple[str, str]] = []
    for lineno, line in enumerate(path.read_text().splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        formulas.append((f"line {lineno}", line))
    return formulas


def check_formulas(
    formulas: Mapping[str, str] | Iterable[tuple[str, str]],
    *,
    prefix: str | None = "=",
    max_workers: int = 1,
    stop_on_error: bool = False,
) -> dict[str, Any]:
    """Parse a batch of formulas.

    Args:
        formulas: ``name -> formula`` mapping or ``(name, formula)`` pairs.
        prefix: Formula marker stripped before parsing (``None`` to keep).
        max_workers: Number of worker threads (1 = sequential).
        stop_on_error: Stop at the first invalid formula.  Forces
            sequential processing so "first" is well defined.

    Returns:
        Summary dict with batch_id, counts, ``aborted`` and the results
        list in input order.
    """
    items = list(formulas.items()) if isinstance(formulas, Mapping) else list(formulas)
    batch_id = str(uuid4())
    logger.debug("batch %s: checking %d formulas", batch_id, len(items))

    emit(
        make_batch_event(
            EventType.batch_started, EventLevel.info, "Batch started",
            batch_id=batch_id, extra={"total": len(items)},
        ),
        batch_id=batch_id,
    )

    if stop_on_error or max_workers <= 1:
        results = _check_sequential(items, prefix, batch_id, stop_on_error)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(
                pool.map(lambda item: _check_single(item[0], item[1], prefix, batch_id), items)
            )

    ok_count = sum(1 for r in results if r["status"] == "ok")
    fail_count = sum(1 for r in results if r["status"] == "error")
    aborted = len(results) < len(items)

    if aborted:
        emit(
            make_batch_event(
                EventType.batch_aborted, EventLevel.warning,
                f"Batch aborted after {len(results)} of {len(items)} formulas",
                batch_id=batch_id,
                extra={"total": len(items), "checked": len(results)},
            ),
            batch_id=batch_id,
        )
    else:
        emit(
            make_batch_event(
                EventType.batch_completed, EventLevel.info, "Batch completed",
                batch_id=batch_id,
                extra={"total": len(results), "ok": ok_count, "failed": fail_count},
            ),
            batch_id=batch_id,
        )

    return {
        "batch_id": batch_id,
        "total": len(items),
        "ok": ok_count,
        "failed": fail_count,
        "aborted": aborted,
        "results": results,
    }


def _check_sequential(
    items: list[tuple[str, str]],
    prefix: str | None,
    batch_id: str,
    stop_on_error: bool,
) -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []
    for name, source in items:
        result = _check_single(name, source, prefix, batch_id)
        results.append(result)
        if stop_on_error and result["status"] == "error":
            break
    return results


def _check_single(name: str, source: str, prefix: str | None, batch_id: str) -> dict[str, Any]:
    """Parse one formula and describe the outcome as a plain dict."""
    text = strip_prefix(source, prefix)
    outcome = try_parse(text)
    if outcome.ok:
        return _success_result(name, source, outcome)

    emit_warning(
        EventType.parse_failed,
        f"{name}: {outcome.message}",
        {
            "batch_id": batch_id,
            "name": name,
            "formula": text,
            "position": outcome.position,
        },
        error_code=outcome.error_code,
        batch_id=batch_id,
    )
    return {
        "name": name,
        "source": source,
        "status": "error",
        "error": {
            "kind": outcome.error_kind,
            "code": outcome.error_code,
            "message": outcome.message,
            "position": outcome.position,
            "expected": list(outcome.expected),
        },
    }


def _success_result(name: str, source: str, outcome: ParseOutcome) -> dict[str, Any]:
    expression = outcome.unwrap()
    refs = sorted(extract_refs(expression), key=lambda ref: (ref.column_index, ref.row))
    return {
        "name": name,
        "source": source,
        "status": "ok",
        "canonical": to_formula(expression),
        "refs": [ref.address for ref in refs],
    }
