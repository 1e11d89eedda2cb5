"""
zap — CLI entrypoint.

Usage:
    zap --help
    zap search ripgrep
    zap install htop github.com/junegunn/fzf @angular/cli
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from zap import __version__
from zap.core.observability.logging_config import (
    FILE_ENV_VAR,
    FILE_LEVEL_ENV_VAR,
    level_from_flags,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="zap")
@click.option("--verbose", "-v", is_flag=True, help="Log progress (INFO).")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Log everything, including registry requests.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Path to config.yml (default: $ZAP_CONFIG or ~/.config/zap/config.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """zap — one command for every package manager on the machine."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=level_from_flags(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(FILE_ENV_VAR),
        log_file_level=os.environ.get(FILE_LEVEL_ENV_VAR),
        quiet_third_party=not debug,
    )


# ── Register command groups ─────────────────────────────────────

from zap.ui.cli.packages import info, install, list_installed, search, update  # noqa: E402
from zap.ui.cli.system import managers, system  # noqa: E402

cli.add_command(search)
cli.add_command(info)
cli.add_command(install)
cli.add_command(update)
cli.add_command(list_installed)
cli.add_command(managers)
cli.add_command(system)


if __name__ == "__main__":
    cli()
