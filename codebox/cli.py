"""CLI interface for codebox."""

from __future__ import annotations

import asyncio

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codebox import __version__

console = Console()
# ``start`` output goes to stderr; the stdio transport owns stdout.
err_console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="codebox")
def cli():
    """codebox - run commands in Docker against registered workspaces."""
    pass


@cli.command()
@click.option("--http", "use_http", is_flag=True, help="Serve over HTTP instead of stdio")
@click.option("--host", default=None, help="HTTP host (default 127.0.0.1)")
@click.option("--port", type=int, default=None, help="HTTP port (default 13014)")
@click.option(
    "--idle-check-interval",
    type=float,
    default=None,
    help="Seconds between idle token sweeps (default 60)",
)
@click.option(
    "--serialize-commands/--no-serialize-commands",
    default=None,
    help="Run commands for the same token one at a time",
)
def start(
    use_http: bool,
    host: str | None,
    port: int | None,
    idle_check_interval: float | None,
    serialize_commands: bool | None,
):
    """Start the codebox server."""
    from codebox.config import ServerSettings
    from codebox.factory import create_runtime
    from codebox.utils import setup_logging

    overrides = {
        "host": host,
        "port": port,
        "idle_check_interval": idle_check_interval,
        "serialize_commands": serialize_commands,
    }
    try:
        settings = ServerSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise click.ClickException(f"Invalid settings: {e}")

    setup_logging(settings.log_level, settings.log_format)
    runtime = create_runtime(settings)

    transport = f"http://{settings.host}:{settings.port}" if use_http else "stdio"
    err_console.print(Panel.fit(
        f"[bold green]Starting codebox[/]\n"
        f"Transport: {transport}\n"
        f"Registry: {runtime.repository.config_file}\n"
        f"Idle sweep: every {settings.idle_check_interval:g}s"
    ))

    try:
        if use_http:
            from codebox.api import run_http_server
            asyncio.run(run_http_server(runtime, settings))
        else:
            from codebox.api import serve_stdio
            asyncio.run(serve_stdio(runtime))
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Shutting down...[/]")


# ── workspace registry ────────────────────────────────────────────────────────

@cli.group()
def workspace():
    """Manage registered workspaces."""
    pass


@workspace.command("add")
@click.argument("dirname", default=".")
@click.option("--image", default=None, help="Docker image to launch per command")
@click.option("--container", default=None, help="Running container to exec into")
@click.option("--name", default=None, help="Workspace name (default: directory name)")
@click.option("--container-path", default=None, help="Path inside the container (default /workspace)")
@click.option("--network", default=None, help="Docker network for launched containers")
@click.option("--copy", "copy_mode", is_flag=True, help="Give each token its own copy of the files")
@click.option("--idle-timeout", type=click.IntRange(min=0), default=None, help="Token idle timeout in ms (0 disables)")
@click.option("--run-template", default=None, help="Custom docker run template")
@click.option("--exec-template", default=None, help="Custom docker exec template")
def add_workspace_cmd(
    dirname: str,
    image: str | None,
    container: str | None,
    name: str | None,
    container_path: str | None,
    network: str | None,
    copy_mode: bool,
    idle_timeout: int | None,
    run_template: str | None,
    exec_template: str | None,
):
    """Register DIRNAME as a workspace."""
    from codebox.config import WorkspaceRepository
    from codebox.registry import add_workspace

    repo = WorkspaceRepository()
    try:
        result = asyncio.run(add_workspace(
            repo,
            dirname,
            image=image,
            container=container,
            name=name,
            container_path=container_path,
            network=network,
            copy=copy_mode,
            idle_timeout=idle_timeout,
            run_template=run_template,
            exec_template=exec_template,
        ))
    except (ValueError, OSError) as e:
        console.print(f"[red]Error: {e}[/]")
        raise click.exceptions.Exit(1)

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/]")
    verb = "Updated" if result.replaced else "Added"
    console.print(f"[green]{verb} workspace: {result.workspace.name}[/]")


@workspace.command("remove")
@click.argument("target", default=".")
@click.option("--name", default=None, help="Remove by name instead of TARGET")
def remove_workspace_cmd(target: str, name: str | None):
    """Remove a workspace by name or directory path."""
    from codebox.config import WorkspaceRepository
    from codebox.registry import remove_workspace

    removed = remove_workspace(WorkspaceRepository(), target, name=name)
    if removed is None:
        console.print(f"[yellow]Workspace not found: {name or target}[/]")
        return
    console.print(f"[green]Removed workspace: {removed.name}[/]")


@workspace.command("list")
def list_workspaces_cmd():
    """List registered workspaces."""
    from pathlib import Path

    from codebox.config import WorkspaceRepository
    from codebox.registry import describe_target

    workspaces = WorkspaceRepository().list_workspaces()
    if not workspaces:
        console.print(
            "[yellow]No workspaces are registered.[/] Use "
            "[bold]codebox workspace add <dirname> --image <image>[/] or "
            "[bold]--container <name>[/] to add one."
        )
        return

    table = Table(title="Registered Workspaces")
    table.add_column("Name")
    table.add_column("Path")
    table.add_column("Status")
    table.add_column("Target")
    table.add_column("Options")

    for ws in workspaces:
        exists = Path(ws.path).is_dir()
        options = []
        if ws.container_path:
            options.append(f"path={ws.container_path}")
        if ws.network:
            options.append(f"network={ws.network}")
        if ws.copy_mode:
            options.append("copy")
        if ws.idle_timeout is not None:
            options.append(f"idle={ws.idle_timeout}ms")
        table.add_row(
            ws.name,
            ws.path,
            "[green]exists[/]" if exists else "[red]missing[/]",
            describe_target(ws),
            ", ".join(options),
        )

    console.print(table)


@cli.command()
def version():
    """Show the codebox version."""
    console.print(f"codebox {__version__}")


def main():
    cli()


if __name__ == "__main__":
    main()
