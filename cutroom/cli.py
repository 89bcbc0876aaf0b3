"""Cutroom operator CLI - quota reconciliation and storage inspection."""

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import select

from .config import GIB, settings
from .models.org import Org
from .services import storage_svc
from .services.quota_svc import QuotaLedger

app = typer.Typer(
    name="cutroom",
    help="Cutroom - video review storage operations",
    no_args_is_help=True,
)
console = Console()


def _session_factory():
    from .database import async_session_factory
    return async_session_factory


def _output_json(result: dict[str, Any]) -> None:
    console.print_json(json.dumps(result, default=str))


def _gib(value: int | str) -> str:
    return f"{int(value) / GIB:.2f} GiB"


async def _load_orgs(db, slug: str | None) -> list[Org]:
    stmt = select(Org).order_by(Org.slug)
    if slug:
        stmt = stmt.where(Org.slug == slug)
    return list((await db.execute(stmt)).scalars().all())


@app.command("init-db")
def init_db():
    """Create tables directly (SQLite/dev). Use Alembic for PostgreSQL."""
    from .database import engine
    from .models import Base

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    console.print("[green]Tables created.[/green]")


@app.command("create-org")
def create_org(
    name: str = typer.Argument(..., help="Display name"),
    slug: str = typer.Option(None, "--slug", "-s", help="URL slug (derived from name if omitted)"),
):
    """Create a tenant org with an empty storage counter."""
    from .routers.orgs import slugify

    async def _create():
        async with _session_factory()() as db:
            org = Org(name=name, slug=slugify(slug or name), storage_used_bytes=0)
            db.add(org)
            await db.commit()
            return org.slug

    console.print(f"[green]Created org[/green] {asyncio.run(_create())}")


@app.command("reconcile")
def reconcile(
    org: str = typer.Option(None, "--org", "-o", help="Org slug (all orgs if omitted)"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Recompute storage counters from live video sizes and report drift."""
    ledger = QuotaLedger()

    async def _run():
        results = []
        async with _session_factory()() as db:
            for row in await _load_orgs(db, org):
                result = await ledger.reconcile(db, row.id)
                results.append({"org": row.slug, **result.to_payload()})
        return results

    results = asyncio.run(_run())
    if org and not results:
        console.print(f"[red]Org '{org}' not found[/red]")
        raise typer.Exit(1)

    if json_output:
        _output_json({"results": results})
        return

    table = Table(title="Storage Reconciliation")
    table.add_column("Org", style="cyan")
    table.add_column("Before")
    table.add_column("Actual")
    table.add_column("Drift")
    for item in results:
        drift = f"{item['driftRatio']:.2%}"
        table.add_row(
            item["org"],
            _gib(item["beforeBytes"]),
            _gib(item["usedBytes"]),
            f"[red]{drift}[/red]" if item["driftExceeded"] else drift,
        )
    console.print(table)


@app.command("usage")
def usage(
    org: str = typer.Argument(..., help="Org slug"),
    top: int = typer.Option(5, "--top", "-n", help="Largest videos to list"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Show an org's storage counter, ground truth and largest videos."""
    ledger = QuotaLedger()

    async def _run():
        async with _session_factory()() as db:
            rows = await _load_orgs(db, org)
            if not rows:
                return None
            return {
                **await storage_svc.usage(db, rows[0].id, ledger),
                "largestVideos": await storage_svc.largest_videos(db, rows[0].id, top),
            }

    result = asyncio.run(_run())
    if result is None:
        console.print(f"[red]Org '{org}' not found[/red]")
        raise typer.Exit(1)

    if json_output:
        _output_json(result)
        return

    console.print(
        f"[bold]{org}[/bold]: {_gib(result['usedBytes'])} used of {_gib(result['limitBytes'])} "
        f"(live {_gib(result['liveBytes'])})"
    )
    table = Table(title="Largest Videos")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Size")
    for video in result["largestVideos"]:
        table.add_row(video["id"], video["title"], _gib(video["sizeBytes"]))
    console.print(table)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("cutroom.app:app", host=host, port=port, log_level="debug" if settings.echo_sql else "info")


if __name__ == "__main__":
    app()
