"""Rich terminal formatting for gradlefix output."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from gradlefix.core.models import ClassifiedFinding, FixClass, FixPlan, Severity, SkippedFile
from gradlefix.fix.models import RunReport, RunState
from gradlefix.fix.planner import render_preview

console = Console()
error_console = Console(stderr=True)


SEVERITY_ICONS = {
    Severity.HIGH: "[red]●[/red]",
    Severity.MEDIUM: "[yellow]●[/yellow]",
    Severity.LOW: "[blue]●[/blue]",
}

FIX_CLASS_COLORS = {
    FixClass.AUTO: "green",
    FixClass.MANUAL: "yellow",
    FixClass.UNSAFE: "red",
}

STATE_COLORS = {
    RunState.CLEAN: "green",
    RunState.COMMITTED: "green",
    RunState.PLANNED: "cyan",
    RunState.MANUAL_REVIEW_REQUIRED: "yellow",
    RunState.ROLLED_BACK: "red",
    RunState.ABORTED: "red",
}


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich. Quiet unless ``verbose``."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=verbose, markup=False)],
        force=True,
    )


def confidence_bar(confidence: float, width: int = 10) -> str:
    """Text bar for a 0..1 confidence."""
    filled = round(confidence * width)
    color = "green" if confidence >= 0.75 else "yellow" if confidence >= 0.5 else "red"
    return f"[{color}]{'█' * filled}{'░' * (width - filled)}[/{color}]"


def print_findings(
    project_name: str, classified: list[ClassifiedFinding], skipped: list[SkippedFile]
) -> None:
    """Print every classified finding as a table."""
    if not classified:
        console.print(Panel(
            "  [green]No issues found.[/green]",
            title=f"[bold]gradlefix  {escape(project_name)}[/bold]",
            border_style="green",
            padding=(0, 1),
        ))
        _print_skipped(skipped)
        return

    table = Table(title=f"gradlefix  {project_name}", title_style="bold", expand=False)
    table.add_column("ID", style="bold")
    table.add_column("Signature")
    table.add_column("Location")
    table.add_column("Class")
    table.add_column("Confidence")
    table.add_column("Issue")

    for item in classified:
        finding = item.finding
        color = FIX_CLASS_COLORS[item.fix_class]
        table.add_row(
            finding.finding_id,
            f"{SEVERITY_ICONS[finding.severity]} {finding.signature_id}",
            escape(str(finding.location)),
            f"[{color}]{item.fix_class.value}[/{color}]",
            f"{confidence_bar(item.confidence)} {item.confidence:.2f}",
            escape(finding.message),
        )
    console.print(table)

    auto = sum(1 for c in classified if c.fix_class is FixClass.AUTO)
    manual = sum(1 for c in classified if c.fix_class is FixClass.MANUAL)
    unsafe = len(classified) - auto - manual
    console.print(f"\n  {auto} auto-fixable | {manual} manual | {unsafe} unsafe")
    console.print("  Preview: [bold]gradlefix plan[/bold]   Apply: [bold]gradlefix fix[/bold]\n")
    _print_skipped(skipped)


def print_plan_preview(plan: FixPlan) -> None:
    """Print the plan as a coloured diff."""
    lines = []
    for line in render_preview(plan).splitlines():
        text = escape(line)
        if line.startswith(("---", "+++")):
            lines.append(f"  [bold]{text}[/bold]")
        elif line.startswith("@@"):
            lines.append(f"  [cyan]{text}[/cyan]")
        elif line.startswith("-"):
            lines.append(f"  [red]{text}[/red]")
        elif line.startswith("+"):
            lines.append(f"  [green]{text}[/green]")
        else:
            lines.append(f"  {text}")

    border = "green" if plan.actions else "yellow"
    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Fix Plan  threshold {plan.auto_threshold:.2f}[/bold]",
        border_style=border,
        padding=(0, 1),
    ))


def print_run_report(report: RunReport) -> None:
    """Print the outcome of a fix run."""
    color = STATE_COLORS.get(report.state, "white")
    lines = [
        "",
        f"  State:  [{color} bold]{report.state.value}[/{color} bold]  (exit {report.exit_code})",
    ]
    if report.assessment:
        a = report.assessment
        lines.append(
            f"  Project: {a.size.value}, {a.module_count} modules, {a.file_count} files, "
            f"{a.mode.value} mode"
        )
    if report.error:
        lines.append(f"  [red]{escape(report.error)}[/red]")
    lines.append("")

    for applied in report.applied:
        action = applied.action
        lines.append(
            f"  [green]✅ {action.action_id}[/green]  {escape(str(applied.applied_location))}  "
            f"{action.category.value}"
        )
    for stale in report.stale:
        lines.append(f"  [yellow]⚠ {stale.action_id}[/yellow]  {escape(stale.file)}  {escape(stale.reason)}")
    if report.verification_failures:
        lines.append(
            f"  [red]❌ Verification failed: {', '.join(report.verification_failures)}[/red]"
        )
    if report.state is RunState.ROLLED_BACK:
        restored = "restored" if report.rollback_ok else "[red]NOT fully restored[/red]"
        lines.append(f"  Rolled back {len(report.attempted)} attempted actions; files {restored}.")
    if report.not_attempted:
        lines.append(f"  [dim]Not attempted: {', '.join(report.not_attempted)}[/dim]")

    if report.plan and report.plan.manual_review:
        lines.append("")
        lines.append(f"  [cyan]{len(report.plan.manual_review)} findings need manual review:[/cyan]")
        for item in report.plan.manual_review:
            lines.append(
                f"    - {item.finding_id}  {escape(str(item.location))}  {escape(f'[{item.reason}]')}  "
                f"{escape(item.message)}"
            )
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]gradlefix  {escape(report.project_name)}[/bold]",
        border_style=color,
        padding=(0, 1),
    ))
    _print_skipped(report.skipped_files)


def _print_skipped(skipped: list[SkippedFile]) -> None:
    for s in skipped:
        error_console.print(f"  [yellow]Skipped {escape(s.file)}: {escape(s.reason)}[/yellow]")


def get_progress() -> Progress:
    """Create a progress instance for analysis."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )
