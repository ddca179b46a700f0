"""Report handoff: turn a finished session into console output or a summary dict."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from uxaudit.core.flags import sort_by_severity
from uxaudit.core.models import AuditSession, Severity

SEVERITY_STYLES: dict[Severity, str] = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def score_style(score: float | None) -> str:
    if score is None:
        return "dim"
    if score >= 8:
        return "green"
    if score >= 6:
        return "yellow"
    return "red"


def summary_dict(session: AuditSession) -> dict[str, Any]:
    """Compact machine-readable summary of a session."""
    validation = session.validation
    return {
        "id": session.id,
        "target": str(session.target_path),
        "score": session.score,
        "grade": session.grade,
        "pre_validation_score": session.pre_validation_score,
        "cancelled": session.cancelled,
        "phases": [
            {
                "phase": r.phase_id.value,
                "success": r.success,
                "score": getattr(r.findings, "score", None),
                "duration_ms": r.duration_ms,
                "errors": r.errors,
            }
            for r in session.phase_results
        ],
        "red_flags": {s.value: n for s, n in session.severity_counts.items()},
        "validation": None
        if validation is None
        else {
            "status": validation.status.value,
            "passed": validation.passed,
            "score": validation.score,
            "confidence": validation.confidence,
        },
    }


def render_text(session: AuditSession, console: Console, verbose: bool = False) -> None:
    """Print a human-readable report."""
    style = score_style(session.score)
    console.print(f"\n[bold]Audit:[/bold] {escape(str(session.target_path))}  [dim]({session.id})[/dim]")
    console.print(f"[bold]Score:[/bold] [{style}]{session.score}/10 ({session.grade})[/{style}]")
    if session.cancelled:
        console.print("[yellow]Audit was cancelled; results are partial[/yellow]")
    console.print()

    table = Table(title="Phases")
    table.add_column("Phase", style="cyan")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Time", justify="right")
    for result in session.phase_results:
        phase_score = getattr(result.findings, "score", None)
        status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
        table.add_row(
            result.phase_id.value,
            status,
            "-" if phase_score is None else f"{phase_score:.1f}",
            f"{result.duration_ms / 1000:.1f}s",
        )
    console.print(table)

    failed = [r for r in session.phase_results if r.errors]
    for result in failed:
        for error in result.errors:
            console.print(f"  [red]{result.phase_id.value}:[/red] {escape(error)}", highlight=False)

    if session.red_flags:
        flags = Table(title=f"Red Flags ({len(session.red_flags)})")
        flags.add_column("Severity")
        flags.add_column("Category", style="dim")
        flags.add_column("Issue")
        flags.add_column("Fix")
        for flag in sort_by_severity(session.red_flags):
            sev_style = SEVERITY_STYLES[flag.severity]
            issue = escape(flag.title)
            if verbose and flag.evidence:
                issue += "\n" + "\n".join(f"  - {escape(e)}" for e in flag.evidence)
            severity = f"[{sev_style}]{flag.severity.value}[/{sev_style}]"
            flags.add_row(severity, escape(flag.category), issue, escape(flag.fix))
        console.print(flags)
    else:
        console.print("[green]No red flags[/green]")

    validation = session.validation
    if validation is not None:
        console.print(
            f"\n[bold]Validation:[/bold] {validation.status.value} "
            f"(score {validation.score}, confidence {validation.confidence:.2f}, "
            f"pre-validation {session.pre_validation_score})"
        )
        if verbose:
            for line in validation.feedback:
                console.print(f"  - {escape(line)}", highlight=False)

    if verbose:
        for phase_id, findings in session.phase_findings.items():
            notes = getattr(findings, "notes", [])
            if notes:
                console.print(f"\n[bold]{phase_id.value}[/bold]")
                for note in notes:
                    console.print(f"  {escape(note)}", highlight=False)
