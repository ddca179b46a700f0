"""CLI interface for uxaudit."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from uxaudit import __version__
from uxaudit.config import Config, get_audit_dir
from uxaudit.core.errors import QuotaExceeded, TargetNotFound
from uxaudit.core.models import AuditOptions, AuditSession, Tier
from uxaudit.core.orchestrator import AuditOrchestrator
from uxaudit.core.serialization import serialize_session
from uxaudit.core.store import SessionStore
from uxaudit.licensing import TIER_LIMITS, QuotaGate, UsageTracker, validation_allowed
from uxaudit.notifications import NullNotifier
from uxaudit.report import render_text, score_style, summary_dict

app = typer.Typer(
    name="uxaudit",
    help="Audit third-party CLI projects for user experience, scoring them 0-10 with itemized red flags.",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("uxaudit")

EXIT_BELOW_THRESHOLD = 1
EXIT_NOT_STARTED = 2


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_path: Path | None) -> Config:
    return Config.load(config_path)


def _quota(config: Config) -> QuotaGate:
    return UsageTracker(config.usage_file)


async def _run_with_signals(orchestrator: AuditOrchestrator, target: Path, options: AuditOptions) -> AuditSession:
    """Run an audit; Ctrl-C stops after the in-flight phase and keeps partial results."""
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        pass
    try:
        return await orchestrator.run(target, options, cancel_event=cancel)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@app.command()
def audit(
    target: Annotated[Path, typer.Argument(help="Path to the project to audit")],
    context: Annotated[
        str | None,
        typer.Option("--context", "-c", help="Domain context for verification (e.g. 'kubernetes tooling')"),
    ] = None,
    tier: Annotated[Tier, typer.Option("--tier", help="Subscription tier")] = Tier.FREE,
    no_validation: Annotated[bool, typer.Option("--no-validation", help="Skip the validation protocol")] = False,
    min_score: Annotated[
        float | None,
        typer.Option("--min-score", help="Exit with code 1 if the final score is below this"),
    ] = None,
    save: Annotated[bool, typer.Option("--save", help="Store the session in .uxaudit/sessions.db")] = False,
    output_format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json")] = "text",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show evidence, notes and debug logs")] = False,
    config_path: Annotated[Path | None, typer.Option("--config", help="Path to config.yaml")] = None,
) -> None:
    """Run the six-phase audit against a project."""
    _setup_logging(verbose)
    config = _load_config(config_path)
    quota = _quota(config)

    try:
        if not quota.may_run_audit(tier):
            raise QuotaExceeded(tier.value)
    except QuotaExceeded as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        limit = TIER_LIMITS[tier].max_audits_per_month
        console.print(f"[dim]The {tier.value} tier allows {limit} audits per month.[/dim]")
        raise typer.Exit(EXIT_NOT_STARTED) from None

    validate = not no_validation
    if validate and not validation_allowed(tier):
        if output_format != "json":
            console.print(f"[yellow]Validation is not available on the {tier.value} tier; skipping[/yellow]")
        validate = False

    options = AuditOptions(context=context, validation_enabled=validate, tier=tier, verbose=verbose)
    if output_format == "json":
        orchestrator = AuditOrchestrator(config=config, notifier=NullNotifier())
    else:
        orchestrator = AuditOrchestrator.from_config(config)

    try:
        session = asyncio.run(_run_with_signals(orchestrator, target, options))
    except TargetNotFound as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(EXIT_NOT_STARTED) from None

    try:
        quota.record_audit(session.target_path)
    except OSError as e:
        logger.warning(f"Could not record audit usage: {e}")

    if save:
        store = SessionStore(get_audit_dir() / "sessions.db")
        store.save(session)

    if output_format == "json":
        # Use print directly to avoid Rich markup processing
        print(serialize_session(session))
    else:
        render_text(session, console, verbose=verbose)
        if save:
            console.print(f"\n[dim]Saved session {session.id}[/dim]")

    if min_score is not None and (session.score or 0.0) < min_score:
        raise typer.Exit(EXIT_BELOW_THRESHOLD)


@app.command()
def history(
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of sessions to show")] = 20,
    target: Annotated[Path | None, typer.Option("--target", help="Only sessions for this project")] = None,
) -> None:
    """Show saved audit sessions."""
    db_path = get_audit_dir() / "sessions.db"
    if not db_path.exists():
        console.print("[yellow]No saved audits yet (use 'uxaudit audit --save')[/yellow]")
        return

    store = SessionStore(db_path)
    rows = store.list_history(limit=limit, target_path=target.resolve() if target else None)
    if not rows:
        console.print("[yellow]No saved audits found[/yellow]")
        return

    table = Table(title="Audit History")
    table.add_column("ID", style="cyan")
    table.add_column("Target")
    table.add_column("Started")
    table.add_column("Score", justify="right")
    table.add_column("Grade")
    table.add_column("Flags", justify="right")

    for row in rows:
        style = score_style(row.score)
        score = "-" if row.score is None else f"[{style}]{row.score:.1f}[/{style}]"
        grade = (row.grade or "-") + (" (partial)" if row.cancelled else "")
        table.add_row(
            row.id,
            escape(row.target_path.name),
            row.started_at.strftime("%Y-%m-%d %H:%M"),
            score,
            grade,
            str(row.red_flag_count),
        )
    console.print(table)


@app.command()
def show(
    session_id: Annotated[str, typer.Argument(help="Session ID (or unique prefix)")],
    output_format: Annotated[str, typer.Option("--format", "-f", help="Output format: text, json, summary")] = "text",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show evidence and notes")] = False,
) -> None:
    """Re-render a saved audit session."""
    store = SessionStore(get_audit_dir() / "sessions.db")
    session = store.get(session_id)
    if session is None:
        console.print(f"[red]Session not found: {escape(session_id)}[/red]")
        raise typer.Exit(1)

    match output_format:
        case "json":
            print(serialize_session(session))
        case "summary":
            print(json.dumps(summary_dict(session), indent=2))
        case _:
            render_text(session, console, verbose=verbose)


@app.command()
def usage(
    tier: Annotated[Tier, typer.Option("--tier", help="Tier to report limits for")] = Tier.FREE,
    config_path: Annotated[Path | None, typer.Option("--config", help="Path to config.yaml")] = None,
) -> None:
    """Show audit usage for the current month."""
    config = _load_config(config_path)
    tracker = UsageTracker(config.usage_file)
    data = tracker.load()
    remaining = tracker.remaining(tier)

    console.print(f"[bold]Month:[/bold] {data.current_month}")
    console.print(f"[bold]Audits this month:[/bold] {data.audits_this_month}")
    console.print(f"[bold]Total audits:[/bold] {data.total_audits}")
    console.print(f"[bold]Remaining ({tier.value}):[/bold] {'unlimited' if remaining is None else remaining}")
    if data.last_audit:
        console.print(f"[bold]Last audit:[/bold] {data.last_audit.strftime('%Y-%m-%d %H:%M')}")


@app.command()
def version() -> None:
    """Show the uxaudit version."""
    console.print(f"uxaudit {__version__}")


if __name__ == "__main__":
    app()
