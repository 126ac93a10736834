"""Unified CLI entry point for siteadapters.

Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (SITEADAPTERS_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

import typer

from siteadapters.cli.common import configure_logging
from siteadapters.cli.probe_cmd import (
    detect_command,
    health_command,
    probe_command,
    profiles_command,
    resolve_command,
)
from siteadapters.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("siteadapters")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "siteadapters: detect chat sites and resolve their input, submit, container and injection nodes. "
    "Config precedence: settings.default.toml -> settings.<env>.toml -> settings.local.toml -> env vars (SITEADAPTERS_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.command("detect")(detect_command)
app.command("resolve")(resolve_command)
app.command("probe")(probe_command)
app.command("health")(health_command)
app.command("profiles")(profiles_command)
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"siteadapters {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()
    if ctx.invoked_subcommand != "settings":
        from siteadapters.settings import get_settings

        configure_logging(get_settings(), verbose=verbose)


if __name__ == "__main__":
    app()
