"""Click CLI entry point for gradlefix."""

from __future__ import annotations

import click

from gradlefix._version import __version__
from gradlefix.core.output import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="gradlefix")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """gradlefix - find build-script problems and fix the safe ones.

    Scan a Gradle build, preview the fix plan, and apply it with rollback.
    """
    configure_logging(verbose)


# Import and register subcommands
from gradlefix.cli.scan_cmd import scan  # noqa: E402
from gradlefix.cli.plan_cmd import plan  # noqa: E402
from gradlefix.cli.fix_cmd import fix  # noqa: E402

cli.add_command(scan)
cli.add_command(plan)
cli.add_command(fix)


if __name__ == "__main__":
    cli()
