"""
CLI commands for searching, installing and updating packages.

Thin wrappers over ``zap.core.services.router``.
"""

from __future__ import annotations

import json
import sys

import click

from zap.core.models import InstallResult, Package
from zap.ui.cli.session import run_with_router

AUTO_BACKEND = "auto"


def _truncate(text: str | None, width: int) -> str:
    text = (text or "").replace("\n", " ")
    return text if len(text) <= width else text[: width - 1] + "…"


def render_summary(results: list[InstallResult]) -> None:
    """Print the per-package outcome table."""
    if not results:
        return
    name_w = max(7, *(len(r.package) for r in results))
    backend_w = max(7, *(len(r.backend) for r in results))

    click.echo()
    click.secho(f"   {'PACKAGE':<{name_w}}  {'BACKEND':<{backend_w}}  STATUS  MESSAGE", bold=True)
    for r in results:
        status = click.style("ok    ", fg="green") if r.success else click.style("failed", fg="red")
        click.echo(f"   {r.package:<{name_w}}  {r.backend or '-':<{backend_w}}  {status}  {r.message or ''}")

    ok = sum(1 for r in results if r.success)
    color = "green" if ok == len(results) else ("yellow" if ok else "red")
    click.echo()
    click.secho(f"   {ok}/{len(results)} installed", fg=color, bold=True)


def _print_package(pkg: Package) -> None:
    marker = click.style(" [installed]", fg="green") if pkg.installed else ""
    click.echo(f"   {pkg.name} {click.style(pkg.version, fg='bright_black')}{marker}")
    if pkg.description:
        click.echo(f"      {_truncate(pkg.description, 100)}")


# ── Query ───────────────────────────────────────────────────────


@click.command()
@click.argument("query")
@click.option("--backend", "-b", "backend_id", default=None, help="Search only this backend.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(ctx: click.Context, query: str, backend_id: str | None, as_json: bool) -> None:
    """Search every package manager for QUERY."""

    async def work(router):
        if backend_id is None:
            return await router.search_all(query)
        backend = router.registry.get(backend_id)
        if backend is None:
            return None
        found = await backend.search(query)
        return [(backend_id, found)] if found else []

    grouped = run_with_router(ctx, work)
    if grouped is None:
        click.secho(f"❌ Backend '{backend_id}' is not available", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(
            [{"backend": bid, **p.model_dump()} for bid, pkgs in grouped for p in pkgs],
            indent=2,
        ))
        return

    if not grouped:
        click.secho(f"⚠️  No packages found for '{query}'", fg="yellow")
        return

    for bid, pkgs in grouped:
        click.secho(f"\n📦 {bid} ({len(pkgs)})", fg="cyan", bold=True)
        for pkg in pkgs:
            _print_package(pkg)
    click.echo()


@click.command()
@click.argument("name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show details for NAME from every backend that has it."""
    grouped = run_with_router(ctx, lambda router: router.info_all(name))

    if as_json:
        click.echo(json.dumps(
            [{"backend": bid, **p.model_dump()} for bid, pkgs in grouped for p in pkgs],
            indent=2,
        ))
        return

    if not grouped:
        click.secho(f"❌ Package '{name}' not found in any backend", fg="red")
        sys.exit(1)

    for bid, pkgs in grouped:
        for pkg in pkgs:
            click.secho(f"\n📦 {pkg.name} ({bid})", fg="cyan", bold=True)
            click.echo(f"   Version:     {pkg.version or '?'}")
            if pkg.description:
                click.echo(f"   Description: {pkg.description}")
            if pkg.url:
                click.echo(f"   URL:         {pkg.url}")
            if pkg.maintainer:
                click.echo(f"   Maintainer:  {pkg.maintainer}")
            if pkg.extra.aur_votes is not None:
                click.echo(f"   Votes:       {pkg.extra.aur_votes}")
            if pkg.popularity:
                click.echo(f"   Popularity:  {pkg.popularity:.2f}")
            if pkg.extra.out_of_date:
                click.secho("   Flagged out of date", fg="yellow")
            if pkg.extra.depends:
                click.echo(f"   Depends:     {', '.join(pkg.extra.depends)}")
            if pkg.extra.license:
                click.echo(f"   License:     {', '.join(pkg.extra.license)}")
    click.echo()


@click.command("list")
@click.option("--backend", "-b", "backend_id", default=None, help="List only this backend.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_installed(ctx: click.Context, backend_id: str | None, as_json: bool) -> None:
    """List installed packages per backend."""

    async def work(router):
        listing = {}
        for backend in router.registry.list_backends():
            if backend_id and backend.id != backend_id:
                continue
            listing[backend.id] = await backend.list_installed()
        return listing

    listing = run_with_router(ctx, work)

    if as_json:
        click.echo(json.dumps(
            {bid: [{"name": n, "version": v} for n, v in pkgs] for bid, pkgs in listing.items()},
            indent=2,
        ))
        return

    if not listing:
        click.secho(f"❌ Backend '{backend_id}' is not available", fg="red")
        sys.exit(1)

    for bid, pkgs in listing.items():
        click.secho(f"\n📦 {bid} ({len(pkgs)})", fg="cyan", bold=True)
        for name, version in pkgs:
            click.echo(f"   {name:<40} {version}")
    click.echo()


# ── Act ─────────────────────────────────────────────────────────


@click.command()
@click.argument("names", nargs=-1, required=True)
@click.option(
    "--backend", "-b", "backend_id", default=AUTO_BACKEND, show_default=True,
    help="Backend to install with; 'auto' picks one per package.",
)
@click.pass_context
def install(ctx: click.Context, names: tuple[str, ...], backend_id: str) -> None:
    """Install one or more packages.

    Exits non-zero only when every package failed.
    """
    if backend_id == AUTO_BACKEND:
        results = run_with_router(ctx, lambda router: router.install_auto(list(names)))
    else:
        results = run_with_router(ctx, lambda router: router.install_with(backend_id, list(names)))

    render_summary(results)
    if results and not any(r.success for r in results):
        sys.exit(1)


@click.command()
@click.option("--check", is_flag=True, help="Only list pending updates.")
@click.pass_context
def update(ctx: click.Context, check: bool) -> None:
    """Update installed packages across every backend."""
    if check:
        pending = run_with_router(ctx, lambda router: router.check_updates_all())
        if not pending:
            click.secho("✅ Everything is up to date", fg="green")
            return
        for bid, pkgs in pending:
            click.secho(f"\n📦 {bid} ({len(pkgs)})", fg="yellow", bold=True)
            for pkg in pkgs:
                click.echo(f"   {pkg.name:<40} → {pkg.version or '?'}")
        click.echo()
        return

    results = run_with_router(ctx, lambda router: router.update_all())
    if not results:
        click.secho("✅ Everything is up to date", fg="green")
        return
    render_summary(results)
    if not any(r.success for r in results):
        sys.exit(1)
