"""Shared CLI utilities.

Provides common functionality for all CLI commands. Human-readable messages
go to stderr; stdout is reserved for the JSON documents that report
commands print.
"""

import asyncio
import functools
import json
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar

import structlog
import typer
from pydantic import BaseModel, Field

from jsmon_cli.models.config import CliSettings, Credentials
from jsmon_cli.services.api_client import JsmonClient
from jsmon_cli.services.config_manager import ConfigManager
from jsmon_cli.utils.classification import is_auth_failure
from jsmon_cli.utils.exceptions import ApiError, JsmonError

logger = structlog.get_logger()

# Type variable for decorator
F = TypeVar("F", bound=Callable)
T = TypeVar("T")

INVALID_KEY_MESSAGE = (
    "API key is invalid or not configured. Use --key, add it to "
    "~/.jsmon/credentials, or set JSMON_API_KEY."
)


class GlobalOptions(BaseModel):
    """Options given before the command name"""

    api_key: Optional[str] = None
    workspace_id: Optional[str] = None
    headers: List[str] = Field(default_factory=list)
    silent: bool = False


def get_options(ctx: typer.Context) -> GlobalOptions:
    """Return the global options stored by the app callback."""
    root = ctx.find_root()
    if isinstance(root.obj, GlobalOptions):
        return root.obj
    return GlobalOptions()


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Expected failures (JsmonError) are shown as a one-line red message;
    anything else is logged with its traceback. Both exit with status 1.

    Args:
        func: Function to wrap.

    Returns:
        Wrapped function with error handling.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except ApiError as e:
            if is_auth_failure(e.status, e.message):
                display_error(f"Error: {INVALID_KEY_MESSAGE}")
            else:
                display_error(f"Error: {e}")
            raise typer.Exit(code=1)
        except JsmonError as e:
            display_error(f"Error: {e}")
            raise typer.Exit(code=1)
        except Exception as e:
            logger.exception("command_failed")
            display_error(f"Error: {e}")
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def resolve(
    options: GlobalOptions, require_workspace: bool = True
) -> Tuple[CliSettings, Credentials]:
    """Resolve settings and credentials for a command.

    Raises:
        CredentialsError: If the API key or a required workspace is missing
    """
    manager = ConfigManager()
    settings = manager.load_settings()
    credentials = manager.load_credentials(
        api_key=options.api_key,
        workspace_id=options.workspace_id,
        headers=options.headers,
        require_workspace=require_workspace,
    )
    return settings, credentials


def run_with_client(
    settings: CliSettings,
    credentials: Credentials,
    call: Callable[[JsmonClient], Awaitable[T]],
) -> T:
    """Open a client, run one coroutine with it and close it again."""

    async def _run() -> T:
        async with JsmonClient(
            credentials.api_key,
            headers=credentials.headers,
            base_url=settings.base_url,
            timeout=settings.request_timeout_seconds,
        ) as client:
            return await call(client)

    return asyncio.run(_run())


def check_page(page: int) -> None:
    """Reject page numbers below 1.

    Raises:
        typer.Exit: If the page is not positive.
    """
    if page < 1:
        display_error("Error: Page number must be a positive integer")
        raise typer.Exit(code=1)


def emit_json(data: Any) -> None:
    """Print a JSON document to stdout."""
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def display_success(message: str) -> None:
    """Display a success message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.GREEN, err=True)


def display_warning(message: str) -> None:
    """Display a warning message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.YELLOW, err=True)


def display_error(message: str) -> None:
    """Display an error message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.RED, err=True)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN, err=True)
