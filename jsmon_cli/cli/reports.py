"""Report commands.

Each command fetches one page of results for the workspace and prints it
as JSON on stdout (``count`` prints a human-readable table instead).
"""

from typing import Optional

import typer

from jsmon_cli.cli.utils import (
    check_page,
    display_error,
    emit_json,
    get_options,
    handle_errors,
    resolve,
    run_with_client,
)
from jsmon_cli.services.report_service import (
    FILTER_FIELDS,
    count_sections,
    intelligence_values,
    parse_field_value,
    scan_assets,
    shape_filter,
    shape_recon,
    shape_reverse_search,
    shape_secrets,
    unescape_search_value,
)

PAGE_OPTION_HELP = "Page number (1-based)"


@handle_errors
def count_command(
    ctx: typer.Context,
    run_id: Optional[str] = typer.Option(
        None, "--run-id", help="Restrict the counts to one scan run"
    ),
):
    """Show reconnaissance and secret counts for the workspace."""
    settings, credentials = resolve(get_options(ctx))

    analysis = run_with_client(
        settings,
        credentials,
        lambda client: client.get_total_count_analysis(
            credentials.workspace_id, run_id=run_id
        ),
    )

    typer.secho("\nWorkspace Count Analysis", fg=typer.colors.GREEN)
    typer.echo("=" * 70)
    for title, counts in count_sections(analysis):
        typer.secho(f"\n{title}", fg=typer.colors.GREEN)
        for label, value in counts:
            typer.echo(f"  {label + ':':<42} {value:>10}")
    typer.echo("=" * 70)


@handle_errors
def urls_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """List scanned JavaScript URLs."""
    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_intelligence(
            credentials.workspace_id, "jsurls", page=page
        ),
    )
    emit_json(intelligence_values(response))


@handle_errors
def domains_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """List scanned domains."""
    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_scans(
            credentials.workspace_id, "domainScan", page=page
        ),
    )
    emit_json(scan_assets(response))


@handle_errors
def files_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """List scanned files."""
    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_scans(credentials.workspace_id, "fileScan", page=page),
    )
    emit_json(scan_assets(response))


@handle_errors
def secrets_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """List secrets found in scanned files."""
    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_secrets(credentials.workspace_id, page=page),
    )
    emit_json(shape_secrets(response))


@handle_errors
def recon_command(
    ctx: typer.Context,
    field: str = typer.Argument(..., help="Field name, e.g. emails, apipaths, param"),
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """Fetch reconnaissance data for one field."""
    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_intelligence(credentials.workspace_id, field, page=page),
    )
    emit_json(shape_recon(field, response))


@handle_errors
def rsearch_command(
    ctx: typer.Context,
    expression: str = typer.Argument(
        ..., help='Field and value, e.g. "emails=admin@example.com"'
    ),
):
    """Find which files a reconnaissance value was found in."""
    try:
        field, value = parse_field_value(expression)
    except ValueError:
        display_error('Error: Use rsearch "<field>=<value>" (e.g. "emails=x@y.com")')
        raise typer.Exit(code=1)

    settings, credentials = resolve(get_options(ctx))
    value = unescape_search_value(value)

    results = run_with_client(
        settings,
        credentials,
        lambda client: client.reverse_search(credentials.workspace_id, field, value),
    )
    emit_json(shape_reverse_search(results))


@handle_errors
def filter_command(
    ctx: typer.Context,
    expression: str = typer.Argument(
        ..., help='Field and keyword, e.g. "urls=github.com"'
    ),
    page: int = typer.Option(1, "--page", "-p", help=PAGE_OPTION_HELP),
):
    """Match a keyword against one reconnaissance field."""
    try:
        field, keyword = parse_field_value(expression)
    except ValueError:
        display_error('Error: Use filter "<field>=<keyword>" (e.g. "urls=github.com")')
        raise typer.Exit(code=1)

    if field.lower() not in FILTER_FIELDS:
        display_error(
            f"Error: Invalid field '{field}'. Allowed fields: {', '.join(FILTER_FIELDS)}"
        )
        raise typer.Exit(code=1)

    check_page(page)
    settings, credentials = resolve(get_options(ctx))

    response = run_with_client(
        settings,
        credentials,
        lambda client: client.get_intelligence(
            credentials.workspace_id, field, page=page, search=keyword
        ),
    )
    emit_json(shape_filter(field, response))
