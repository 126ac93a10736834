"""CLI commands for inspecting and validating site adapter settings."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.markup import escape

settings_app = typer.Typer(help="Inspect and validate siteadapters configuration.")
console = Console()


@settings_app.command("show")
def show_settings() -> None:
    """Display the currently resolved settings."""
    from siteadapters.settings import get_settings

    settings = get_settings()
    console.print_json(json.dumps(settings.model_dump(mode="json"), indent=2, default=str))


@settings_app.command("validate")
def validate_settings() -> None:
    """Validate settings and report the detection and resolver checks."""
    from pydantic import ValidationError

    from siteadapters.settings import get_settings

    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]✗[/red] Settings validation failed ({e.error_count()} error(s)):")
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "settings"
            console.print(f"  {location}: {escape(err['msg'])}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]✗[/red] Settings could not be loaded: {escape(str(e))}")
        raise typer.Exit(code=1)

    detection = settings.detection
    resolver = settings.resolver
    console.print("[green]✓[/green] Settings are valid.")
    console.print(f"  Environment: {settings.env}")
    console.print(
        f"  Detection weights: url {detection.url_weight:.2f} + structure {detection.dom_weight:.2f}"
        f" = {detection.url_weight + detection.dom_weight:.2f} (max 1.00)"
    )
    console.print(
        f"  Match threshold: > {detection.match_threshold:.2f}, boost cap {detection.max_additional_confidence:.2f}"
    )
    console.print(f"  Detection cache TTL: {detection.cache_ttl_ms}ms")
    console.print(f"  Resolver budget: {resolver.max_timeout_ms}ms ({resolver.max_attempts} attempts per expression)")

    if detection.url_weight + detection.dom_weight <= detection.match_threshold:
        console.print("[yellow]![/yellow] No page can score above the match threshold; detection will never match.")
