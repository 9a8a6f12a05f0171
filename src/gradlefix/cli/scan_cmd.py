"""gradlefix scan command."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from gradlefix.core.config import load_config
from gradlefix.core.errors import ProjectUnreadable
from gradlefix.core.output import console, error_console, get_progress, print_findings
from gradlefix.fix.engine import FixEngine
from gradlefix.scanner.signatures import CATALOG_VERSION


@click.command()
@click.argument("target", default=".", type=click.Path(file_okay=False, path_type=Path))
@click.option("--only", type=str, default=None, help="Scan only these categories (comma-separated)")
@click.option("--json", "as_json", is_flag=True, help="Print findings as JSON")
def scan(target: Path, only: str | None, as_json: bool):
    """Detect and classify issues in the build at TARGET."""
    project_path = target.resolve()
    config = load_config(project_path)
    if only:
        config.detect.categories = [c.strip() for c in only.split(",") if c.strip()]

    try:
        engine = FixEngine(project_path, config)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--only") from e

    try:
        if as_json:
            analysis = engine.analyze()
        else:
            with get_progress() as progress:
                progress.add_task(f"Scanning {project_path.name}...", total=None)
                analysis = engine.analyze()
    except ProjectUnreadable as e:
        error_console.print(f"\n  [red]Cannot read project: {e}[/red]")
        if e.diagnostic:
            error_console.print(f"  [dim]{e.diagnostic}[/dim]")
        sys.exit(4)

    if as_json:
        click.echo(json.dumps(_analysis_to_dict(analysis), indent=2))
        return

    print_findings(analysis.model.name, analysis.classified, analysis.detection.skipped)
    if analysis.model.tool_version is None:
        console.print("  [dim]No Gradle wrapper found; version-gated checks assume a current Gradle.[/dim]")


def _analysis_to_dict(analysis) -> dict:
    """Convert an Analysis to a JSON-serializable dict."""
    model = analysis.model
    return {
        "project": model.name,
        "tool_version": str(model.tool_version) if model.tool_version else None,
        "catalog_version": CATALOG_VERSION,
        "modules": [m.name for m in model.modules],
        "findings": [
            {
                "finding_id": c.finding.finding_id,
                "signature_id": c.finding.signature_id,
                "category": c.category.value,
                "severity": c.finding.severity.value,
                "file": c.location.file,
                "line": c.location.start_line,
                "module": c.finding.module,
                "message": c.finding.message,
                "fix_class": c.fix_class.value,
                "confidence": c.confidence,
                "reasons": list(c.reasons),
            }
            for c in analysis.classified
        ],
        "skipped_files": [{"file": s.file, "reason": s.reason} for s in analysis.detection.skipped],
    }
