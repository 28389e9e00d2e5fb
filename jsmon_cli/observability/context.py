"""Run ID context management for tracing a single CLI invocation.

Every batch upload gets a run ID so that its log lines can be grouped
when several invocations share one log file.

Usage:
    from jsmon_cli.observability.context import run_id_context

    with run_id_context() as run_id:
        await service.run(request)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set the run ID for the current context.

    Args:
        run_id: Optional explicit ID. A short UUID is generated when omitted.

    Returns:
        The run ID that was set.
    """
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]

    _run_id_var.set(run_id)
    return run_id


def get_run_id() -> Optional[str]:
    """Return the current run ID, or None outside a run."""
    return _run_id_var.get()


def clear_run_id() -> None:
    _run_id_var.set(None)


@contextmanager
def run_id_context(run_id: Optional[str] = None) -> Generator[str, None, None]:
    """Scope a run ID to a block, restoring the previous value on exit.

    Args:
        run_id: Optional explicit ID. A short UUID is generated when omitted.

    Yields:
        The run ID in effect inside the block.
    """
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]

    token = _run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        _run_id_var.reset(token)
