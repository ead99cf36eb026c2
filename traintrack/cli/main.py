"""Command line for running a batch and inspecting the result."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from traintrack.core.errors import ConfigurationError
from traintrack.core.validation import validate_roster
from traintrack.model.slots import Matched, MissingButExpected, slot_label
from traintrack.pipeline.bootstrap import bootstrap_tracker, load_config
from traintrack.pipeline.runtime import locate_pr, run_batch
from traintrack.report.models import BatchReport
from traintrack.report.serialize import report_to_json, save_report
from traintrack.utils.dates import as_utc

app = typer.Typer(help="Reconcile trainee PRs, reviews and attendance against a course.")
console = Console()

_STATUS_STYLES = {
    "on-track": "green",
    "behind": "yellow",
    "at-risk": "bold red",
    "super-active": "green",
    "active": "cyan",
    "inactive": "dim",
}

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Tracker YAML (defaults to $TRAINTRACK_CONFIG or config/tracker.yaml).")
EVENTS_OPTION = typer.Option(None, "--events", "-e", help="JSON event dump (defaults to the config's events_path).")
NOW_OPTION = typer.Option(None, "--now", help="Reference instant as ISO 8601; defaults to the current UTC time.")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Log debug output.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _parse_now(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise typer.BadParameter(f"--now must be an ISO 8601 timestamp, got {value!r}") from exc


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]{exc}[/bold red]")
    if isinstance(exc, ConfigurationError):
        for problem in exc.problems:
            console.print(f"  - {problem}")
    raise typer.Exit(code=2)


def _print_report(report: BatchReport) -> None:
    console.print(f"[bold]{report.batch}[/bold] ({report.course}) as of {report.generated_at.isoformat()}")
    trainees = Table("Login", "Name", "Region", "Score", "Status", "Attendance", title="Trainees")
    for trainee in report.trainees:
        style = _STATUS_STYLES.get(trainee.status.value)
        trainees.add_row(
            trainee.github_login,
            trainee.name,
            trainee.region,
            str(trainee.score),
            f"[{style}]{trainee.status.value}[/{style}]" if style else trainee.status.value,
            trainee.attendance_label,
        )
    console.print(trainees)

    reviewers = Table("Reviewer", "Reviews", "PRs", "Last review", "Days since", "Days (28d)", "Status", title="Reviewers")
    for reviewer in report.reviewers:
        style = _STATUS_STYLES.get(reviewer.status.value)
        reviewers.add_row(
            reviewer.login,
            str(reviewer.total_reviews),
            str(len(reviewer.reviewed_prs)),
            reviewer.last_review_at.isoformat() if reviewer.last_review_at else "-",
            str(reviewer.days_since_last_review) if reviewer.days_since_last_review is not None else "-",
            str(reviewer.review_days_last_28),
            f"[{style}]{reviewer.status.value}[/{style}]" if style else reviewer.status.value,
        )
    console.print(reviewers)

    if report.unmatched:
        unmatched = Table("Kind", "Reason", "Identity", "Detail", title="Unmatched events")
        for event in report.unmatched:
            unmatched.add_row(event.kind.value, event.reason.value, event.identity, event.detail)
        console.print(unmatched)
    else:
        console.print("[green]Every event was placed.[/green]")


@app.command()
def report(
    config: Optional[Path] = CONFIG_OPTION,
    events: Optional[Path] = EVENTS_OPTION,
    now: Optional[str] = NOW_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit the serialized report instead of tables."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the JSON report to this path."),
    workers: int = typer.Option(1, "--workers", min=1, help="Reconcile trainees on this many threads."),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Append provenance events to DIR/provenance.jsonl."),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run the batch and print trainee, reviewer and unmatched tables."""
    _configure_logging(verbose)
    reference = _parse_now(now)
    try:
        ctx = bootstrap_tracker(config, events_path=events, log_dir=log_dir)
        result = run_batch(ctx.config, ctx.events, reference, workers=workers, provenance=ctx.provenance)
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
        return
    if output is not None:
        save_report(result, output)
    if as_json:
        typer.echo(report_to_json(result))
    else:
        _print_report(result)
        if output is not None:
            console.print(f"[dim]Report written to {output}[/dim]")


@app.command()
def validate(
    config: Optional[Path] = CONFIG_OPTION,
    fail_on_warning: bool = typer.Option(False, "--fail-on-warning", help="Exit non-zero when warnings are present."),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Check the curriculum and roster for structural problems."""
    _configure_logging(verbose)
    try:
        tracker = load_config(config)
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
        return
    result = validate_roster(tracker.roster)
    batch = tracker.batch
    summary = Table("Metric", "Count", title=f"{batch.name} ({batch.course.name})")
    summary.add_row("Modules", str(len(batch.course.modules)))
    summary.add_row("Assignments", str(batch.course.assignment_count()))
    summary.add_row("Trainees", str(len(batch.trainees)))
    summary.add_row("Reviewers", str(len(tracker.reviewers)))
    summary.add_row("Scheduled days", str(len(batch.scheduled_days)))
    console.print(summary)

    if result.errors or result.warnings:
        table = Table(title="Problems", show_header=True)
        table.add_column("Severity", justify="center")
        table.add_column("Message")
        for issue in result.errors:
            table.add_row("error", issue, style="bold red")
        for issue in result.warnings:
            table.add_row("warning", issue, style="yellow")
        console.print(table)

    if result.errors or (fail_on_warning and result.warnings):
        raise typer.Exit(code=1)

    console.print("[green]Configuration looks good![/green]")


@app.command("match-pr")
def match_pr(
    url: str = typer.Option(..., "--url", help="URL of the PR to explain."),
    config: Optional[Path] = CONFIG_OPTION,
    events: Optional[Path] = EVENTS_OPTION,
    now: Optional[str] = NOW_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Show how one PR was matched against its author's assignments."""
    _configure_logging(verbose)
    reference = _parse_now(now)
    try:
        ctx = bootstrap_tracker(config, events_path=events)
        placement = locate_pr(ctx.config, ctx.events, url, reference)
    except KeyError:
        console.print(f"[bold red]No PR with URL {url} in the event dump[/bold red]")
        raise typer.Exit(code=1)
    except (ValueError, FileNotFoundError) as exc:
        _fail(exc)
        return

    rows = []
    if placement.module is not None:
        for sprint in placement.module.sprints:
            for assignment in sprint.slots:
                cell = assignment.slot
                filled_by = cell.submission.url if isinstance(cell, Matched) else None
                rows.append(
                    {
                        "sprint": sprint.number,
                        "assignment": assignment.title,
                        "slot": slot_label(cell),
                        "filled_by": filled_by,
                        "this_pr": filled_by == url,
                        "overdue": isinstance(cell, MissingButExpected),
                    }
                )
    if as_json:
        payload = {
            "url": url,
            "author": placement.author,
            "title": placement.title,
            "matched": placement.matched and any(row["this_pr"] for row in rows),
            "unmatched_reason": placement.unmatched.reason.value if placement.unmatched else None,
            "module": placement.module.name if placement.module else None,
            "slots": rows,
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    console.print(f"[bold]{placement.title or '(untitled)'}[/bold] by {placement.author or 'unknown'} ({url})")
    if placement.unmatched is not None:
        console.print(f"[yellow]Not placed: {placement.unmatched.reason.value}[/yellow] {placement.unmatched.detail}")
    if placement.module is None:
        console.print("[dim]No module of this course uses the PR's repository for this author.[/dim]")
        return
    table = Table("Sprint", "Assignment", "Slot", "Filled by", title=placement.module.name)
    for row in rows:
        style = "bold green" if row["this_pr"] else None
        table.add_row(str(row["sprint"]), row["assignment"], row["slot"], row["filled_by"] or "-", style=style)
    console.print(table)


if __name__ == "__main__":
    app()
