"""CLI commands that run detection and node resolution against a page.

Every command reads either a saved HTML snapshot (``--html FILE``, with
``--url`` giving the URL the snapshot came from) or a live page opened in
Chromium through Playwright (``--live --url URL``).
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from siteadapters.cli.common import check_source, open_host
from siteadapters.exceptions import AdapterError
from siteadapters.models import NodeResolutionResult, NodeRole

console = Console()

_HTML_OPT = typer.Option(None, "--html", help="Saved HTML snapshot to analyse.")
_URL_OPT = typer.Option(None, "--url", "-u", help="Page URL (navigated to with --live, reported by --html).")
_LIVE_OPT = typer.Option(False, "--live", help="Open --url in a Playwright-driven browser.")
_JSON_OPT = typer.Option(False, "--json", "-j", help="Output as JSON.")


def _settings():
    from siteadapters.settings import get_settings

    return get_settings()


def _result_row(result: NodeResolutionResult) -> dict[str, Any]:
    return {
        "found": result.found,
        "selector_used": result.selector_used,
        "expression": result.expression,
        "elapsed_ms": round(result.elapsed_ms, 2),
        "attempts": result.attempts,
        "error": result.error.to_dict() if result.error else None,
    }


# ---------------------------------------------------------------------------
# siteadapters detect
# ---------------------------------------------------------------------------


def detect_command(
    html: Optional[Path] = _HTML_OPT,
    url: Optional[str] = _URL_OPT,
    live: bool = _LIVE_OPT,
    json_output: bool = _JSON_OPT,
) -> None:
    """Detect which known site profile the page matches."""
    check_source(html, live, url)
    settings = _settings()

    async def _run():
        from siteadapters.runtime import create_context

        async with open_host(settings, html=html, url=url, live=live) as host:
            context = create_context(host, settings=settings)
            return await context.detect_site()

    result = asyncio.run(_run())

    if json_output:
        console.print_json(result.model_dump_json(indent=2))
        return

    label = f"[green]{result.profile_id}[/green]" if result.profile_id else "[yellow]no match[/yellow]"
    console.print(f"Profile:    {label}")
    console.print(f"Confidence: {result.confidence:.2f}")
    console.print(f"URL:        {escape(result.url)}")
    if result.details.error:
        console.print(f"[red]Error:[/red] {escape(result.details.error)}")

    table = Table(title="Scores")
    table.add_column("Profile", style="cyan")
    table.add_column("Confidence", justify="right")
    for profile_id, score in result.details.scores.items():
        table.add_row(profile_id, f"{score:.2f}")
    console.print(table)


# ---------------------------------------------------------------------------
# siteadapters resolve
# ---------------------------------------------------------------------------


def resolve_command(
    role: NodeRole = typer.Argument(..., help="Node role to resolve."),
    html: Optional[Path] = _HTML_OPT,
    url: Optional[str] = _URL_OPT,
    live: bool = _LIVE_OPT,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Profile id (default: detected)."),
    expression: Optional[str] = typer.Option(
        None, "--expression", "-e", help="Ad-hoc primary expression, with generic fallbacks."
    ),
    json_output: bool = _JSON_OPT,
) -> None:
    """Resolve one node role through its fallback chain."""
    check_source(html, live, url)
    settings = _settings()

    async def _run() -> tuple[str, NodeResolutionResult, str]:
        from siteadapters.resolution import FallbackResolver, generic_spec
        from siteadapters.runtime import create_context
        from siteadapters.sites import BUILTIN_PROFILES

        async with open_host(settings, html=html, url=url, live=live) as host:
            if expression:
                spec = generic_spec(role, expression)
                resolver = FallbackResolver.from_settings(host, settings.resolver)
                result = await resolver.resolve(spec)
                return "generic", result, await _describe(result)

            profile_id = profile
            if profile_id is None:
                detection = await create_context(host, settings=settings).detect_site()
                profile_id = detection.profile_id
            match = next((p for p in BUILTIN_PROFILES if p.profile_id == profile_id), None)
            if match is None:
                raise typer.BadParameter(f"Unknown or undetected profile: {profile_id}. Use --profile or --expression.")
            resolver = FallbackResolver.from_settings(host, settings.resolver)
            result = await resolver.resolve(match.spec_for(role))
            return match.profile_id, result, await _describe(result)

    source, result, description = asyncio.run(_run())

    if json_output:
        console.print_json(json.dumps({"profile": source, "role": role.value, **_result_row(result)}, default=str))
    elif result.found:
        console.print(f"[green]✓[/green] {role.value} ({source}) via {result.selector_used}: {escape(result.expression or '')}")
        console.print(f"  Node:    {escape(description)}")
        console.print(f"  Elapsed: {result.elapsed_ms:.0f}ms, attempts: {result.attempts}")
    else:
        console.print(f"[red]✗[/red] {role.value} ({source}) not found")
        if result.error:
            console.print(f"  {escape(str(result.error))}")

    if not result.found:
        raise typer.Exit(code=1)


async def _describe(result: NodeResolutionResult) -> str:
    return await result.node.describe() if result.node is not None else ""


# ---------------------------------------------------------------------------
# siteadapters probe
# ---------------------------------------------------------------------------


def probe_command(
    html: Optional[Path] = _HTML_OPT,
    url: Optional[str] = _URL_OPT,
    live: bool = _LIVE_OPT,
    json_output: bool = _JSON_OPT,
) -> None:
    """Detect the site, initialize its adapter and resolve every node role."""
    check_source(html, live, url)
    settings = _settings()

    async def _run() -> dict[str, Any]:
        from siteadapters.runtime import create_context

        async with open_host(settings, html=html, url=url, live=live) as host:
            context = create_context(host, settings=settings)
            try:
                adapter = await context.get_adapter()
            except AdapterError as exc:
                return {"profile": None, "error": str(exc)}
            if adapter is None:
                detection = await context.detect_site()
                return {"profile": None, "confidence": detection.confidence, "roles": {}}
            try:
                await adapter.initialize()
                roles = {role.value: _result_row(await adapter.find(role)) for role in NodeRole}
                return {
                    "profile": adapter.profile_id,
                    "confidence": await adapter.detect(),
                    "roles": roles,
                    "metrics": adapter.metrics.summary(),
                }
            except AdapterError as exc:
                return {"profile": adapter.profile_id, "error": str(exc)}
            finally:
                await context.cleanup_site_adapters()

    report = asyncio.run(_run())

    if json_output:
        console.print_json(json.dumps(report, default=str))
    else:
        _print_probe(report)

    if report.get("error") or not report.get("profile"):
        raise typer.Exit(code=1)


def _print_probe(report: dict[str, Any]) -> None:
    if report.get("error"):
        console.print(f"[red]✗[/red] {escape(report['error'])}")
        return
    if not report.get("profile"):
        console.print(f"[yellow]No supported site detected[/yellow] (confidence {report.get('confidence', 0):.2f})")
        return

    console.print(f"[bold cyan]{report['profile']}[/bold cyan]  confidence {report['confidence']:.2f}")
    table = Table(title="Node roles")
    table.add_column("Role", style="cyan")
    table.add_column("Found", justify="center")
    table.add_column("Via")
    table.add_column("Expression", style="dim", max_width=50)
    table.add_column("ms", justify="right")
    for role, row in report["roles"].items():
        table.add_row(
            role,
            "[green]✓[/green]" if row["found"] else "[red]✗[/red]",
            str(row["selector_used"]) if row["found"] else "",
            escape(row["expression"] or ""),
            f"{row['elapsed_ms']:.0f}",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# siteadapters health
# ---------------------------------------------------------------------------


def health_command(
    expression: str = typer.Argument(..., help="Query expression to exercise."),
    html: Optional[Path] = _HTML_OPT,
    url: Optional[str] = _URL_OPT,
    live: bool = _LIVE_OPT,
    iterations: int = typer.Option(10, "--iterations", "-n", min=1, help="Number of queries."),
    delay_ms: float = typer.Option(100, "--delay-ms", min=0, help="Pause between queries."),
    json_output: bool = _JSON_OPT,
) -> None:
    """Query an expression repeatedly and report how reliably it matches."""
    check_source(html, live, url)
    settings = _settings()

    async def _run():
        from siteadapters.resolution import check_expression

        async with open_host(settings, html=html, url=url, live=live) as host:
            return await check_expression(host, expression, iterations=iterations, delay_ms=delay_ms)

    health = asyncio.run(_run())

    if json_output:
        console.print_json(health.model_dump_json(indent=2))
    else:
        mark = "[green]✓[/green]" if health.healthy else "[yellow]![/yellow]"
        console.print(f"{mark} {escape(expression)}")
        console.print(f"  Success rate: {health.success_rate:.0%} over {health.iterations} queries")
        console.print(f"  Average time: {health.average_time_ms:.2f}ms")
        for error in health.errors:
            console.print(f"  [red]Error:[/red] {escape(error)}")

    if health.errors:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# siteadapters profiles
# ---------------------------------------------------------------------------


def profiles_command(json_output: bool = _JSON_OPT) -> None:
    """List the built-in site profiles."""
    from siteadapters.sites import BUILTIN_PROFILES

    if json_output:
        data = [
            {
                "profile_id": p.profile_id,
                "display_name": p.display.display_name,
                "url_patterns": [pattern.pattern for pattern in p.url_patterns],
                "uses_content_editable": p.display.features.uses_content_editable,
            }
            for p in BUILTIN_PROFILES
        ]
        console.print_json(json.dumps(data, indent=2))
        return

    table = Table(title="Site profiles")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("URL patterns", style="dim")
    table.add_column("Input primary", max_width=40)
    for p in BUILTIN_PROFILES:
        table.add_row(
            p.profile_id,
            p.display.display_name,
            escape("\n".join(pattern.pattern for pattern in p.url_patterns)),
            escape(p.input.primary),
        )
    console.print(table)
