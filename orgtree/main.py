"""
Command line entry point for the org tree service.

    orgtree serve            run the HTTP API
    orgtree init-db          create the tables
    orgtree tree 1 -j eng    print the filtered subtree below group 1
    orgtree ancestors 3      print the chain above group 3
    orgtree clear-cache      drop every org tree cache entry
"""

import asyncio
import logging
from typing import Optional

import typer
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .api.app import build_directory, create_app
from .cache.keys import CacheKeyPrefix
from .database.config import initialize_database
from .errors import OrgTreeError
from .models import AncestorNodeModel, SubtreeNodeModel, build_filters
from .services.directory import OrgDirectory
from .utils.config import OrgTreeConfig, configure_logging, load_config

logger = logging.getLogger(__name__)

app = typer.Typer(help="Org tree hierarchy service")
console = Console()


def _load() -> OrgTreeConfig:
    try:
        config = load_config()
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)
    configure_logging(config.log_level)
    return config


def _subtree_branch(parent: Tree, node: SubtreeNodeModel) -> None:
    branch = parent.add(f"[bold cyan]{node.groupName}[/bold cyan] [dim]#{node.id}[/dim]")
    for person in node.persons:
        branch.add(f"{person.firstName} {person.lastName} [yellow]{person.jobTitle}[/yellow]")
    for child in node.groups:
        _subtree_branch(branch, child)


async def _with_directory(config: OrgTreeConfig, action):
    directory = await build_directory(config)
    try:
        return await action(directory)
    finally:
        await directory.cache.close()
        directory.gateway.db.close()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (HOST env var by default)"),
    port: Optional[int] = typer.Option(None, help="Port (PORT env var by default)"),
):
    """Run the HTTP API with uvicorn."""
    config = _load()
    host = host or config.host
    port = port or config.port

    logger.info(f"Starting org tree service on {host}:{port} (cache={config.cache_backend})")
    uvicorn.run(create_app(config=config), host=host, port=port, log_level=config.log_level.lower())


@app.command("init-db")
def init_db():
    """Create the group and person tables."""
    config = _load()
    db_config = initialize_database(config.database_url, create_tables=True)
    console.print(f"[green]✓[/green] Tables ready ({db_config.get_connection_info()['database_url']})")
    db_config.close()


@app.command()
def tree(
    group_id: int = typer.Argument(..., help="Root group of the subtree"),
    job_title: Optional[str] = typer.Option(None, "--job-title", "-j", help="Only list persons with this job title"),
    first_name: Optional[str] = typer.Option(None, "--first-name", "-f", help="Only list persons with this first name"),
):
    """Print the subtree below a group."""
    config = _load()
    filters = build_filters(job_title, first_name)

    async def action(directory: OrgDirectory) -> SubtreeNodeModel:
        return await directory.get_group_subtree(group_id, filters)

    try:
        node = asyncio.run(_with_directory(config, action))
    except OrgTreeError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise typer.Exit(code=1)

    root = Tree("[bold]Groups below[/bold]")
    _subtree_branch(root, node)
    console.print(root)


@app.command()
def ancestors(group_id: int = typer.Argument(..., help="Group to start from")):
    """Print the chain of groups above a group."""
    config = _load()

    async def action(directory: OrgDirectory) -> AncestorNodeModel:
        return await directory.get_group_ancestors(group_id)

    try:
        node = asyncio.run(_with_directory(config, action))
    except OrgTreeError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Groups above", box=box.ROUNDED)
    table.add_column("Level", style="dim", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Group")

    level = 0
    current: Optional[AncestorNodeModel] = node
    while current is not None:
        table.add_row(str(level), str(current.id), current.groupName)
        current = current.parentGroup[0] if current.parentGroup else None
        level += 1
    console.print(table)


@app.command("clear-cache")
def clear_cache():
    """Remove every cached person, group, ancestor and subtree entry."""
    config = _load()

    async def action(directory: OrgDirectory) -> int:
        removed = 0
        for prefix in CacheKeyPrefix:
            removed += await directory.cache.invalidate_prefix(prefix.value)
        return removed

    try:
        removed = asyncio.run(_with_directory(config, action))
    except OrgTreeError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Removed {removed} cache entries")


if __name__ == "__main__":
    app()
