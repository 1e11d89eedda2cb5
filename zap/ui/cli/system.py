"""
CLI commands describing the machine: detected system and package managers.
"""

from __future__ import annotations

import json
from dataclasses import asdict

import click

from zap.ui.cli.session import run_with_router


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def managers(ctx: click.Context, as_json: bool) -> None:
    """Show the package managers zap can use here."""

    async def work(router):
        return [
            {
                "id": b.id,
                "name": b.name,
                "primary": b.id == router.primary_id,
                "community": b.id == router.community_id,
            }
            for b in router.registry.list_backends()
        ]

    backends = run_with_router(ctx, work)

    if as_json:
        click.echo(json.dumps(backends, indent=2))
        return

    click.secho("📦 Package Managers:", fg="cyan", bold=True)
    for b in backends:
        role = " (primary)" if b["primary"] else " (community)" if b["community"] else ""
        click.echo(f"   ✅ {b['id']:<8} {b['name']}{role}")
    click.echo()


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def system(as_json: bool) -> None:
    """Show the detected operating system."""
    from zap.adapters.registry import detect_available_backends, detect_system

    info = detect_system()
    available = detect_available_backends()

    if as_json:
        click.echo(json.dumps({**asdict(info), "backends": available}, indent=2))
        return

    click.secho(f"🖥️  {info.name}", fg="cyan", bold=True)
    click.echo(f"   ID:       {info.id}")
    click.echo(f"   Family:   {info.family}")
    click.echo(f"   Backends: {', '.join(available) or 'none'}")
