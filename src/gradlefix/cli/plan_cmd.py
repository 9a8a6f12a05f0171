"""gradlefix plan command."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from gradlefix.core.config import load_config
from gradlefix.core.errors import ProjectUnreadable
from gradlefix.core.output import error_console, print_plan_preview
from gradlefix.fix.engine import FixEngine
from gradlefix.fix.planner import render_preview


@click.command()
@click.argument("target", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--threshold", type=click.FloatRange(0.0, 1.0), default=None,
              help="Minimum confidence for automatic fixes")
@click.option("--plain", is_flag=True, help="Print the preview without colours or panels")
def plan(target: Path, threshold: float | None, plain: bool):
    """Show the fix plan for TARGET without touching any file."""
    project_path = target.resolve()
    config = load_config(project_path)
    if threshold is not None:
        config.fix.auto_threshold = threshold

    try:
        engine = FixEngine(project_path, config)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="gradlefix.toml") from e

    try:
        analysis = engine.analyze()
    except ProjectUnreadable as e:
        error_console.print(f"\n  [red]Cannot read project: {e}[/red]")
        sys.exit(4)

    if plain:
        click.echo(render_preview(analysis.plan))
    else:
        print_plan_preview(analysis.plan)
