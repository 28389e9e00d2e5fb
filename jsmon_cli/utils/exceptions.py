"""Exception hierarchy for the JSMon CLI

All exceptions inherit from JsmonError so the CLI can convert any expected
failure into a clean message and exit status in a single except block:
```python
try:
    summary = await service.run(request)
except JsmonError as e:
    display_error(str(e))
    raise typer.Exit(code=1)
```

A generic per-item upload failure is deliberately not an exception: it is
recorded as an UploadOutcome and the batch continues.
"""

from pathlib import Path
from typing import Optional


class JsmonError(Exception):
    """Base exception for all CLI errors"""

    pass


class CredentialsError(JsmonError):
    """Required credentials are missing

    Raised when:
    - No API key in flag, credentials file or environment
    - No workspace ID in flag or environment for a workspace-scoped command
    """

    pass


class ApiError(JsmonError):
    """The JSMon API rejected a request or could not be reached

    Attributes:
        status: HTTP status code, or None when no response was received
        message: Error text reported by the API
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status:
            return f"[HTTP {self.status}] {self.message}"
        return self.message


class AuthenticationError(JsmonError):
    """API key is invalid or not configured

    Fatal for the whole run. No checkpoint is written because the same key
    would fail identically on resume.
    """

    pass


class BatchAbortedError(JsmonError):
    """A batch upload stopped early with its progress checkpointed

    Attributes:
        checkpoint_path: Where the resumable state was written
        saved: Whether the checkpoint write succeeded
    """

    def __init__(
        self, message: str, checkpoint_path: Path, saved: bool = True
    ) -> None:
        super().__init__(message)
        self.checkpoint_path = checkpoint_path
        self.saved = saved


class QuotaExhaustedError(BatchAbortedError):
    """The account's scan allotment is used up

    The user should add scan limits and resume from the checkpoint.
    """

    pass


class RateLimitError(BatchAbortedError):
    """The API is throttling requests (HTTP 429 or rate limit language)

    The user should wait and resume from the checkpoint.
    """

    pass


class BatchInterruptedError(BatchAbortedError):
    """The batch was stopped by SIGINT or SIGTERM"""

    pass


class ResumeMismatchError(JsmonError):
    """A resume request does not match the checkpoint

    Raised when:
    - Checkpoint kind is not a file batch
    - Checkpoint source file differs from the file named by the caller
    """

    pass


class InputFileError(JsmonError):
    """The list of URLs to upload could not be read"""

    pass


class CheckpointError(JsmonError):
    """Base for checkpoint store failures"""

    pass


class CheckpointIOError(CheckpointError):
    """Checkpoint could not be written"""

    pass


class CheckpointNotFoundError(CheckpointError):
    """Checkpoint file does not exist"""

    pass


class CheckpointParseError(CheckpointError):
    """Checkpoint file exists but its content is malformed"""

    pass
