"""CLI entry point for the Subagent Hub."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from subagent_hub import __version__
from subagent_hub.config import USER_CONFIG_FILE, HubSettings, load_settings, save_settings

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="subagent-hub")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", default=None, help="Explicit config file")
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """Subagent Hub: executor registry, routing and task delegation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _settings(ctx: click.Context) -> HubSettings:
    return load_settings(ctx.obj.get("config_path"))


@main.command()
@click.option("--path", "target", type=click.Path(path_type=Path), default=None,
              help="Where to write the config file")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init(target: Path | None, force: bool) -> None:
    """Write a default config file (~/.subagent-hub/config.toml)."""
    target = target or USER_CONFIG_FILE
    if target.exists() and not force:
        console.print(f"[yellow]Config already exists at {target}[/yellow] (use --force)")
        return
    save_settings(HubSettings.default(), target)
    console.print(f"[green]Subagent hub initialized at {target.parent}[/green]")
    console.print(f"  Config: {target}")


def _load_executors(path: Path) -> list:
    from subagent_hub.discovery.cache import load_executor_file

    try:
        return load_executor_file(path)
    except (OSError, KeyError, ValueError) as e:
        raise click.ClickException(f"Cannot read executors from {path}: {e}") from e


@main.command()
@click.option("--executors", "executors_file", required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="TOML file with [[executors]] tables")
def executors(executors_file: Path) -> None:
    """List executors and the capabilities derived for them."""
    descriptors = _load_executors(executors_file)
    if not descriptors:
        console.print("[dim]No executors defined.[/dim]")
        return

    from subagent_hub.engine.capabilities import extract_capabilities

    table = Table(title="Executors")
    table.add_column("ID", style="cyan")
    table.add_column("Role", style="green")
    table.add_column("Tools")
    table.add_column("Specializations", max_width=40)
    table.add_column("Categories", max_width=40)

    for descriptor in descriptors:
        capabilities = extract_capabilities(descriptor)
        table.add_row(
            descriptor.id,
            descriptor.role,
            ", ".join(capabilities.tools) or "-",
            ", ".join(capabilities.specializations) or "-",
            ", ".join(capabilities.task_categories),
        )
    console.print(table)


@main.command()
@click.argument("task")
@click.option("--executors", "executors_file", required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="TOML file with [[executors]] tables")
@click.option("--tool", "tools", multiple=True, help="Required tool (repeatable)")
@click.option("--fallback", is_flag=True, help="Widen to busy/other executors when none qualify")
@click.pass_context
def route(
    ctx: click.Context, task: str, executors_file: Path, tools: tuple[str, ...], fallback: bool
) -> None:
    """Score executors for TASK and show which one would be chosen."""
    from subagent_hub.hub import SubagentHub

    hub = SubagentHub(_settings(ctx))
    for descriptor in _load_executors(executors_file):
        hub.register(descriptor)

    ranked = hub.router.rank(task, list(tools), allow_fallback=fallback)
    if not ranked:
        console.print("[red]No eligible executor for this task.[/red]")
        return

    table = Table(title=f"Routing: {task[:60]}")
    table.add_column("Executor", style="cyan")
    table.add_column("Role")
    table.add_column("Success", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Tools", justify="right")
    table.add_column("Spec", justify="right")
    table.add_column("Total", style="bold", justify="right")
    table.add_column("Role fit", style="dim", justify="right")

    for candidate in ranked:
        table.add_row(
            candidate.registration.id,
            candidate.registration.role,
            f"{candidate.success_rate_score:.1f}",
            f"{candidate.load_score:.1f}",
            f"{candidate.tool_score:.1f}",
            f"{candidate.specialization_score:.1f}",
            f"{candidate.total:.1f}",
            f"{candidate.role_alignment:.0f}",
        )
    console.print(table)
    console.print(f"\n[bold green]Selected:[/bold green] {ranked[0].registration.id}")


@main.command()
@click.option("--home", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Inventory directory (default: ~/.subagent-hub)")
@click.pass_context
def discover(ctx: click.Context, home: Path | None) -> None:
    """Refresh every discovery source once and show what was found."""
    from subagent_hub.discovery.cache import DiscoveryCache, default_sources

    settings = _settings(ctx)
    if home is None and settings.discovery_home:
        home = Path(settings.discovery_home).expanduser()
    cache = DiscoveryCache(
        default_sources(home), freshness_ratio=settings.cache_freshness_ratio
    )
    asyncio.run(cache.refresh_all())

    table = Table(title="Discovery Sources")
    table.add_column("Source", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Items", justify="right")
    table.add_column("Status")

    for source in cache.sources():
        entry = cache.entry(source.id)
        table.add_row(
            source.name,
            source.type,
            str(len(entry.payload) if entry else 0),
            cache.status_of(source.id),
        )
    console.print(table)


@main.command()
@click.option("--limit", default=20, help="Number of entries to show")
@click.option("--db", "db_path", default=None, help="Ledger database path")
@click.pass_context
def history(ctx: click.Context, limit: int, db_path: str | None) -> None:
    """Show recent delegations from the ledger."""
    from subagent_hub.delegation.ledger import DelegationLedger

    ledger_path = db_path or _settings(ctx).ledger_path

    async def fetch() -> list[dict]:
        async with DelegationLedger(ledger_path) as ledger:
            return await ledger.recent(limit)

    rows = asyncio.run(fetch())
    if not rows:
        console.print("[dim]No delegation history yet.[/dim]")
        return

    table = Table(title="Delegation History")
    table.add_column("Task", style="cyan")
    table.add_column("Executor", style="green")
    table.add_column("Result")
    table.add_column("Duration", justify="right")
    table.add_column("On time")
    table.add_column("Confidence", justify="right")

    for row in rows:
        result = "ok" if row["success"] else (row["error_kind"] or "failed")
        table.add_row(
            str(row["task_id"])[:24],
            str(row["executor_id"]),
            result,
            f"{row['duration_ms']:.0f}ms",
            "yes" if row["completed_on_time"] else "no",
            f"{row['confidence']:.0f}",
        )
    console.print(table)
