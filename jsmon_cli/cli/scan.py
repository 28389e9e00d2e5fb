"""Scan submission commands: url, domain, file and resume."""

from pathlib import Path
from typing import Optional

import typer

from jsmon_cli.cli.utils import (
    INVALID_KEY_MESSAGE,
    display_error,
    display_info,
    display_success,
    display_warning,
    emit_json,
    get_options,
    handle_errors,
    resolve,
    run_with_client,
)
from jsmon_cli.models.config import CliSettings, Credentials
from jsmon_cli.models.scan import ApiResult, BatchSummary, ErrorKind, UploadOutcome
from jsmon_cli.services.batch_upload_service import BatchUploadService
from jsmon_cli.services.checkpoint_service import CheckpointService
from jsmon_cli.utils.classification import classify_failure, clean_failure_message
from jsmon_cli.utils.domain import extract_domain
from jsmon_cli.utils.exceptions import BatchAbortedError


def _report_failure(result: ApiResult, prefix: str) -> None:
    """Print why a single submission failed, then exit 1."""
    kind = classify_failure(result.status_code, result.message)

    if kind == ErrorKind.AUTH_FAILURE:
        display_error(f"Error: {INVALID_KEY_MESSAGE}")
    elif kind == ErrorKind.QUOTA_EXHAUSTED:
        display_error("Insufficient scan limits")
        display_error("Please add scan limits and try again")
    elif kind == ErrorKind.RATE_LIMITED:
        display_error("Rate limit reached")
        display_error("Please try again later")
    else:
        reason = clean_failure_message(result.message) or "unknown error"
        if result.status_code:
            reason = f"[HTTP {result.status_code}] {reason}"
        display_error(f"{prefix} - {reason}")

    raise typer.Exit(code=1)


@handle_errors
def url_command(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL of the JavaScript file to scan"),
):
    """Upload a single URL for scanning."""
    options = get_options(ctx)
    settings, credentials = resolve(options)

    if not options.silent:
        display_info(f"Scanning started for - {url}")

    result = run_with_client(
        settings,
        credentials,
        lambda client: client.upload_url(url, credentials.workspace_id),
    )

    if not result.success:
        _report_failure(result, f"Error uploading url: {url}")

    display_success(f"URL scan completed for - {url}")


@handle_errors
def domain_command(
    ctx: typer.Context,
    domain: str = typer.Argument(..., help="Domain (or URL) to scan"),
):
    """Start an automated scan of a domain."""
    options = get_options(ctx)
    target = extract_domain(domain)
    if not target:
        display_error("Error: Domain must not be empty")
        raise typer.Exit(code=1)

    settings, credentials = resolve(options)

    if not options.silent:
        display_info(f"Domain scan started for - {target}")

    result = run_with_client(
        settings,
        credentials,
        lambda client: client.scan_domain(target, credentials.workspace_id),
    )

    if not result.success:
        _report_failure(result, f"Error scanning domain: {target}")

    display_success(f"Domain scan completed for - {target}")


def _run_batch(
    settings: CliSettings,
    credentials: Credentials,
    silent: bool,
    source_path: Optional[Path] = None,
    resume_path: Optional[Path] = None,
) -> BatchSummary:
    def progress(position: int, total: int, outcome: UploadOutcome) -> None:
        if silent:
            return
        if outcome.success:
            display_success(f"[{position}/{total}] Scan started for - {outcome.item}")
        else:
            display_warning(
                f"[{position}/{total}] Failed: {outcome.item} - {outcome.message}"
            )

    async def call(client) -> BatchSummary:
        service = BatchUploadService(client, CheckpointService(), settings)
        return await service.run(
            credentials.workspace_id,
            source_path=source_path,
            resume_path=resume_path,
            progress=progress,
        )

    try:
        return run_with_client(settings, credentials, call)
    except BatchAbortedError as e:
        display_error(str(e))
        if not e.saved:
            display_warning(f"Warning: progress could not be saved to {e.checkpoint_path}")
        raise typer.Exit(code=1)


@handle_errors
def file_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File with one URL per line"),
):
    """Upload every URL in a file, checkpointing progress."""
    options = get_options(ctx)
    settings, credentials = resolve(options)

    summary = _run_batch(settings, credentials, options.silent, source_path=path)
    emit_json(summary.to_report())


@handle_errors
def resume_command(
    ctx: typer.Context,
    checkpoint: Path = typer.Argument(..., help="Checkpoint file (e.g. resume.cfg)"),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="Source file; must match the checkpoint when given",
    ),
):
    """Resume an interrupted file upload from its checkpoint."""
    options = get_options(ctx)
    settings, credentials = resolve(options)

    summary = _run_batch(
        settings,
        credentials,
        options.silent,
        source_path=file,
        resume_path=checkpoint,
    )
    emit_json(summary.to_report())
