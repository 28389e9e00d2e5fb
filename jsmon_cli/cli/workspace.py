"""Workspace commands."""

import typer

from jsmon_cli.cli.utils import (
    display_info,
    display_success,
    get_options,
    handle_errors,
    resolve,
    run_with_client,
)
from jsmon_cli.services.report_service import workspace_rows


@handle_errors
def create_workspace_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the new workspace"),
):
    """Create a workspace and print its ID."""
    settings, credentials = resolve(get_options(ctx), require_workspace=False)

    workspace_id = run_with_client(
        settings, credentials, lambda client: client.create_workspace(name)
    )

    display_success("✓ Workspace created successfully")
    typer.echo(f"Workspace Name: {name}")
    typer.echo(f"Workspace ID: {workspace_id}")


@handle_errors
def workspaces_command(ctx: typer.Context):
    """List the workspaces available to the API key."""
    settings, credentials = resolve(get_options(ctx), require_workspace=False)

    workspaces = run_with_client(
        settings, credentials, lambda client: client.get_workspaces()
    )

    if not workspaces:
        display_info("No workspaces found.")
        return

    for row in workspace_rows(workspaces):
        typer.echo(row)
