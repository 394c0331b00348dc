"""CLI entrypoint (Typer).

- `buildspace serve`: run the HTTP API
- `buildspace exec "<command>"`: run one command in a workspace
- `buildspace status`: show the workspace root and registered workspaces
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from buildspace.config import get_settings
from buildspace.manager import WorkspaceManager

app = typer.Typer(help="Buildspace workspace manager.")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "buildspace.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload or settings.debug,
    )


@app.command("exec")
def exec_command(
    command: str,
    workspace_id: Optional[str] = typer.Option(None, "--workspace", "-w", help="Workspace id"),
    working_dir: Optional[str] = typer.Option(None, "--cwd", help="Working directory override"),
):
    """Run a command in a workspace and print the result."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    manager = WorkspaceManager(settings)

    async def _run():
        try:
            return await manager.execute(workspace_id, command, working_dir)
        finally:
            await manager.close()

    result = asyncio.run(_run())

    if result.output:
        typer.echo(result.output.rstrip())
    if result.error:
        typer.echo(result.error.rstrip(), err=True)
    for warning in result.warnings:
        typer.echo(f"warning: {warning}", err=True)
    raise typer.Exit(code=result.exit_code)


@app.command()
def status():
    """Show the workspace root and registered workspaces."""
    manager = WorkspaceManager()

    async def _status():
        try:
            return await manager.status()
        finally:
            await manager.close()

    report = asyncio.run(_status())
    typer.echo(f"Mode: {report.mode}")
    typer.echo(f"Workspace root: {report.workspace_root}")
    typer.echo(f"Workspaces: {report.active_workspace_count}")
    for workspace in report.workspaces:
        typer.echo(f"  {workspace.name}  {workspace.id}  cwd={workspace.working_dir}")


if __name__ == "__main__":
    app()
