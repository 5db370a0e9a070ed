"""Command-line interface for cellform."""

from __future__ import annotations

import json
from pathlib import Path

import click

from cellform import __version__
from cellform.config import CONFIG_FILENAME, DEFAULT_CONFIG, DEMO_CONFIG, load_config, strip_prefix
from cellform.formulas import Formula, FormulaParseError


@click.group()
@click.version_option(version=__version__, prog_name="cellform")
def main() -> None:
    """cellform -- parse spreadsheet arithmetic formulas."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _render_parse_error(text: str, exc: FormulaParseError) -> str:
    """Format *exc* with a caret under the offending character."""
    lines = [str(exc)]
    if exc.position is not None:
        lines.append(f"  {text}")
        lines.append("  " + " " * exc.position + "^")
    if exc.expected:
        lines.append("expected: " + ", ".join(exc.expected))
    return "\n".join(lines)


def _parse_or_exit(formula: str, prefix: str) -> Formula:
    text = strip_prefix(formula, prefix)
    try:
        return Formula.from_text(text)
    except FormulaParseError as e:
        click.echo(_render_parse_error(text, e), err=True)
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Init
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path(file_okay=False), default=".")
def init(directory: str) -> None:
    """Write a commented cellform.yaml into DIRECTORY."""
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    config_path = target / CONFIG_FILENAME
    if config_path.exists():
        raise click.ClickException(f"{config_path} already exists")
    config_path.write_text(DEMO_CONFIG)
    click.echo(f"Created {config_path}")


# ---------------------------------------------------------------------------
# Parse / refs
# ---------------------------------------------------------------------------


@main.command()
@click.argument("formula")
@click.option("--prefix", default="=", show_default=True, help="Formula marker to strip before parsing.")
@click.option("--json", "as_json", is_flag=True, help="Output the expression tree as JSON.")
def parse(formula: str, prefix: str, as_json: bool) -> None:
    """Parse FORMULA and print its canonical form."""
    parsed = _parse_or_exit(formula, prefix)
    if as_json:
        click.echo(json.dumps(parsed.expression.model_dump(mode="json"), indent=2))
    else:
        click.echo(parsed.canonical)


@main.command()
@click.argument("formula")
@click.option("--prefix", default="=", show_default=True, help="Formula marker to strip before parsing.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def refs(formula: str, prefix: str, as_json: bool) -> None:
    """List the cells FORMULA references."""
    parsed = _parse_or_exit(formula, prefix)
    sorted_refs = parsed.sorted_refs()
    if as_json:
        click.echo(json.dumps([{"column": r.column, "row": r.row} for r in sorted_refs], indent=2))
        return
    for ref in sorted_refs:
        click.echo(ref.address)


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--project", "directory", default=None, type=click.Path(exists=True, file_okay=False), help="Project directory (config and logs).")
@click.option("--workers", type=int, default=None, help="Worker threads (default from config).")
@click.option("--stop-on-error", is_flag=True, help="Abort at the first invalid formula.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def check(path: str, directory: str | None, workers: int | None, stop_on_error: bool, as_json: bool) -> None:
    """Parse every formula in PATH and report errors."""
    from cellform.batch import check_formulas, load_formulas
    from cellform.logging.events import set_project_dir

    if directory is not None:
        project_dir = Path(directory)
        try:
            config = load_config(project_dir)
        except ValueError as e:
            raise click.ClickException(str(e))
        set_project_dir(project_dir)
    else:
        config = dict(DEFAULT_CONFIG)

    try:
        formulas = load_formulas(Path(path))
    except ValueError as e:
        raise click.ClickException(str(e))

    summary = check_formulas(
        formulas,
        prefix=config.get("formula_prefix"),
        max_workers=workers if workers is not None else int(config.get("max_workers", 1)),
        stop_on_error=stop_on_error or bool(config.get("stop_on_error")),
    )

    if as_json:
        click.echo(json.dumps(summary, indent=2, default=str))
    else:
        for r in summary["results"]:
            if r["status"] == "ok":
                click.echo(f"  ok    {r['name']}: {r['canonical']}")
            else:
                err = r["error"]
                click.echo(f"  FAIL  {r['name']}: {err['message']} (at position {err['position']})")
        line = f"{summary['ok']} ok, {summary['failed']} failed, {summary['total']} total"
        if summary["aborted"]:
            line += " (aborted)"
        click.echo(line)

    if summary["failed"]:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


@main.command()
@click.option("--project", "directory", default=".", type=click.Path(exists=True, file_okay=False), help="Project directory.")
@click.option("--level", type=click.Choice(["info", "warning", "error"]), default=None, help="Filter by level.")
@click.option("--event-type", default=None, help="Filter by event type.")
@click.option("--batch", "batch_id", default=None, help="Filter by batch id.")
@click.option("--limit", type=int, default=50, show_default=True, help="Maximum number of events.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def logs(directory: str, level: str | None, event_type: str | None, batch_id: str | None, limit: int, as_json: bool) -> None:
    """Show recorded events, newest first."""
    from cellform.logging.sink import EventSink

    project_dir = Path(directory)
    if not (project_dir / "logs").exists():
        click.echo("No logs recorded.")
        return

    sink = EventSink(project_dir)
    events = sink.read_global(level=level, event_type=event_type, batch_id=batch_id, limit=limit)

    if as_json:
        click.echo(json.dumps(events, indent=2, default=str))
        return
    if not events:
        click.echo("No matching events.")
        return
    for e in events:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):<7}  {e.get('event_type', '')}{code}  {e.get('message', '')}")
