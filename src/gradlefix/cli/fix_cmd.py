"""gradlefix fix command."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.prompt import Confirm

from gradlefix.core.config import load_config
from gradlefix.core.errors import ProjectUnreadable
from gradlefix.core.output import console, print_plan_preview, print_run_report
from gradlefix.fix.engine import FixEngine


@click.command()
@click.argument("target", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Plan only; never write files")
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None,
              help="Minimum confidence for automatic fixes")
@click.option("--checkpoint", type=click.Choice(["snapshot", "git"]), default=None,
              help="How to checkpoint files before writing")
@click.option("--json", "as_json", is_flag=True, help="Print the run report as JSON")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
def fix(
    target: Path,
    dry_run: bool,
    threshold: float | None,
    checkpoint: str | None,
    as_json: bool,
    yes: bool,
):
    """Apply the automatic fixes for TARGET, rolling back if verification fails.

    Exits 0 when clean, 1 when the plan was not applied, 2 when fixes were
    committed, 3 after a rollback and 4 when the run aborted.
    """
    project_path = target.resolve()
    config = load_config(project_path)
    if threshold is not None:
        config.fix.auto_threshold = threshold
    if checkpoint is not None:
        config.fix.checkpoint = checkpoint
    dry_run = dry_run or config.fix.dry_run

    if as_json and not (yes or dry_run):
        raise click.UsageError("--json needs --yes or --dry-run, since it cannot prompt")

    try:
        engine = FixEngine(project_path, config)
        engine.checkpoints  # an unknown [fix] checkpoint kind fails here
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="gradlefix.toml") from e

    analysis = None
    if not (yes or dry_run):
        try:
            analysis = engine.analyze()
        except ProjectUnreadable:
            analysis = None  # the run below reports it
        else:
            if analysis.plan.actions:
                print_plan_preview(analysis.plan)
                if not Confirm.ask(f"  Apply {len(analysis.plan.actions)} fixes?", default=False):
                    console.print("  [dim]Nothing applied.[/dim]")
                    sys.exit(1)

    report = engine.run(dry_run=dry_run, analysis=analysis)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        if dry_run and report.plan is not None and report.plan.actions:
            print_plan_preview(report.plan)
        print_run_report(report)

    sys.exit(report.exit_code)
