"""JSMon CLI Package.

Provides the command-line interface for the JSMon scanning API.

Usage:
    jsmon-cli --wksp <ID> url https://example.com/app.js
    jsmon-cli --wksp <ID> file urls.txt
    jsmon-cli --wksp <ID> resume resume.cfg
    jsmon-cli --wksp <ID> recon emails --page 2
    jsmon-cli workspaces
"""

from typing import List, Optional

import typer

from jsmon_cli import __version__
from jsmon_cli.cli.reports import (
    count_command,
    domains_command,
    files_command,
    filter_command,
    recon_command,
    rsearch_command,
    secrets_command,
    urls_command,
)
from jsmon_cli.cli.scan import domain_command, file_command, resume_command, url_command
from jsmon_cli.cli.utils import GlobalOptions
from jsmon_cli.cli.workspace import create_workspace_command, workspaces_command
from jsmon_cli.observability import configure_logging

# Create main app
app = typer.Typer(
    help="JSMon CLI: submit scans and fetch results from the JSMon API",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"jsmon-cli {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    key: Optional[str] = typer.Option(
        None, "--key", help="API key (overrides ~/.jsmon/credentials and JSMON_API_KEY)"
    ),
    wksp: Optional[str] = typer.Option(
        None, "--wksp", help="Workspace ID (overrides JSMON_WORKSPACE_ID)"
    ),
    header: Optional[List[str]] = typer.Option(
        None, "--header", "-H", help='Custom header "Name: value" (repeatable)'
    ),
    silent: bool = typer.Option(
        False, "--silent", help="Suppress per-item progress messages"
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="DEBUG, INFO, WARNING or ERROR"
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Emit logs as JSON lines on stderr"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Store global options for the selected command."""
    configure_logging(level=log_level, json_output=json_logs)
    ctx.obj = GlobalOptions(
        api_key=key,
        workspace_id=wksp,
        headers=list(header or []),
        silent=silent,
    )


# Scan submission
app.command(name="url")(url_command)
app.command(name="domain")(domain_command)
app.command(name="file")(file_command)
app.command(name="resume")(resume_command)

# Workspaces
app.command(name="create-workspace")(create_workspace_command)
app.command(name="workspaces")(workspaces_command)

# Reports
app.command(name="count")(count_command)
app.command(name="urls")(urls_command)
app.command(name="domains")(domains_command)
app.command(name="files")(files_command)
app.command(name="secrets")(secrets_command)
app.command(name="recon")(recon_command)
app.command(name="rsearch")(rsearch_command)
app.command(name="filter")(filter_command)

__all__ = [
    "app",
    "url_command",
    "domain_command",
    "file_command",
    "resume_command",
    "create_workspace_command",
    "workspaces_command",
    "count_command",
    "urls_command",
    "domains_command",
    "files_command",
    "secrets_command",
    "recon_command",
    "rsearch_command",
    "filter_command",
]
