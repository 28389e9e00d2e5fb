"""Observability helpers: structured logging and run ID context.

Usage:
    from jsmon_cli.observability import configure_logging, get_logger, run_id_context
"""

from jsmon_cli.observability.context import (
    set_run_id,
    get_run_id,
    clear_run_id,
    run_id_context,
)
from jsmon_cli.observability.logging import (
    configure_logging,
    get_logger,
    add_run_id_processor,
)

__all__ = [
    # Context
    "set_run_id",
    "get_run_id",
    "clear_run_id",
    "run_id_context",
    # Logging
    "configure_logging",
    "get_logger",
    "add_run_id_processor",
]
