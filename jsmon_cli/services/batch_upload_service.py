"""
Batch upload service with checkpoint/resume.

Uploads every URL of a file, one at a time, persisting progress so that a
batch stopped by a scan quota, a rate limit or a signal can be resumed later
from the first item that was never attempted.

Checkpoint writes:
- every ``checkpoint_interval`` items attempted in this invocation
- right before aborting on quota exhaustion or rate limiting
- best effort after each generic per-item failure
- from the SIGINT/SIGTERM handler
- once at completion (the file is then deleted for a fresh run)
"""

import asyncio
import os
import signal
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import structlog

from jsmon_cli.models.checkpoint import Checkpoint
from jsmon_cli.models.config import CliSettings
from jsmon_cli.models.scan import BatchSummary, ErrorKind, UploadOutcome
from jsmon_cli.observability.context import run_id_context
from jsmon_cli.services.api_client import ScanSubmitter
from jsmon_cli.services.checkpoint_service import CheckpointService
from jsmon_cli.utils.classification import classify_failure, clean_failure_message
from jsmon_cli.utils.exceptions import (
    AuthenticationError,
    BatchInterruptedError,
    CheckpointIOError,
    InputFileError,
    QuotaExhaustedError,
    RateLimitError,
    ResumeMismatchError,
)

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, UploadOutcome], None]

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def read_items(path: Path) -> List[str]:
    """Read one item per line, skipping blank lines.

    Raises:
        InputFileError: If the file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]
    except OSError as e:
        raise InputFileError(f"Failed to read {path}: {e}") from e


def _same_path(a: str, b: str) -> bool:
    if a == b:
        return True
    return os.path.abspath(os.path.expanduser(a)) == os.path.abspath(
        os.path.expanduser(b)
    )


class BatchUploadService:
    """
    Upload a list of URLs sequentially with resumable progress.

    The checkpoint object is shared with the signal handler; both run on the
    event loop thread so no locking is needed.
    """

    def __init__(
        self,
        client: ScanSubmitter,
        checkpoint_service: Optional[CheckpointService] = None,
        settings: Optional[CliSettings] = None,
    ):
        self.client = client
        self.checkpoint_service = checkpoint_service or CheckpointService()
        self.settings = settings or CliSettings()

        self._checkpoint: Optional[Checkpoint] = None
        self._checkpoint_path: Optional[Path] = None
        self._task: Optional["asyncio.Task[BatchSummary]"] = None
        self._interrupted = False
        self._interrupt_saved = False

    async def upload_one(self, item: str, workspace_id: str) -> UploadOutcome:
        """
        Submit one item and classify the result.

        Args:
            item: URL to upload
            workspace_id: Target workspace

        Returns:
            UploadOutcome with the error kind and a cleaned message
        """
        result = await self.client.upload_url(item, workspace_id)

        if result.success:
            return UploadOutcome(item=item, success=True)

        kind = classify_failure(result.status_code, result.message)
        if kind == ErrorKind.SUCCESS:
            # A failed result with no detail at all is still a failure
            kind = ErrorKind.GENERIC_FAILURE

        return UploadOutcome(
            item=item,
            success=False,
            error_kind=kind,
            message=clean_failure_message(result.message) or "Upload failed",
        )

    async def run(
        self,
        workspace_id: str,
        source_path: Optional[Path] = None,
        resume_path: Optional[Path] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> BatchSummary:
        """
        Run a fresh or resumed batch upload.

        Args:
            workspace_id: Target workspace
            source_path: File with one URL per line. Required for a fresh
                run; on resume it must match the checkpoint when given.
            resume_path: Checkpoint file to resume from
            progress: Called as ``progress(position, total, outcome)`` after
                every item that does not abort the batch

        Returns:
            BatchSummary of the items attempted in this invocation

        Raises:
            AuthenticationError: API key rejected (no checkpoint written)
            QuotaExhaustedError: Scan limit reached (checkpoint written)
            RateLimitError: API throttling (checkpoint written)
            BatchInterruptedError: SIGINT/SIGTERM received (checkpoint written)
            ResumeMismatchError: Checkpoint does not match the request
            CheckpointNotFoundError, CheckpointParseError: Bad resume file
            InputFileError: Source file unreadable on a fresh run
        """
        with run_id_context() as run_id:
            checkpoint, checkpoint_path, is_resume = self._initialize(
                source_path, resume_path
            )
            logger.info(
                "batch_started",
                run_id=run_id,
                source=checkpoint.source_path,
                total=len(checkpoint.all_items),
                start_index=checkpoint.resume_index,
                resume=is_resume,
            )

            self._checkpoint = checkpoint
            self._checkpoint_path = checkpoint_path
            self._interrupted = False
            self._interrupt_saved = False

            # The loop runs in its own task so an interrupt can cancel it
            # without cancelling the caller.
            self._task = asyncio.ensure_future(
                self._process(checkpoint, workspace_id, progress)
            )
            installed = self._install_signal_handlers()
            try:
                summary = await self._task
            except asyncio.CancelledError:
                if not self._interrupted:
                    raise
                raise self._interrupted_error()
            finally:
                self._remove_signal_handlers(installed)
                self._task = None

            self._complete(checkpoint, checkpoint_path, is_resume)
            logger.info(
                "batch_completed",
                total=summary.total,
                succeeded=summary.succeeded,
                failed=summary.failed,
            )
            return summary

    def _initialize(
        self, source_path: Optional[Path], resume_path: Optional[Path]
    ) -> Tuple[Checkpoint, Path, bool]:
        if resume_path is not None:
            checkpoint = self.checkpoint_service.load(resume_path)

            if not checkpoint.is_file_batch:
                raise ResumeMismatchError(
                    f"Checkpoint {resume_path} is not a file upload "
                    f"(type '{checkpoint.kind}')"
                )
            if source_path is not None and not _same_path(
                str(source_path), checkpoint.source_path
            ):
                raise ResumeMismatchError(
                    f"Checkpoint {resume_path} belongs to "
                    f"'{checkpoint.source_path}', not '{source_path}'"
                )
            return checkpoint, Path(resume_path), True

        if source_path is None:
            raise InputFileError("A source file is required for a new batch upload")

        checkpoint = Checkpoint(
            source_path=str(source_path),
            all_items=read_items(Path(source_path)),
            last_index=-1,
        )
        return checkpoint, Path(self.settings.resume_file), False

    async def _process(
        self,
        checkpoint: Checkpoint,
        workspace_id: str,
        progress: Optional[ProgressCallback],
    ) -> BatchSummary:
        summary = BatchSummary(total=len(checkpoint.all_items))
        total = len(checkpoint.all_items)
        interval = self.settings.checkpoint_interval
        attempted = 0

        for index in range(checkpoint.resume_index, total):
            if self._interrupted:
                raise self._interrupted_error()

            item = checkpoint.all_items[index]
            checkpoint.mark_attempted(index)
            attempted += 1

            outcome = await self.upload_one(item, workspace_id)

            if outcome.error_kind == ErrorKind.AUTH_FAILURE:
                logger.error("upload_auth_failed", url=item, error=outcome.message)
                raise AuthenticationError(
                    "Invalid API key. Please check your credentials in "
                    "~/.jsmon/credentials or pass a valid key with --key."
                )

            if outcome.error_kind == ErrorKind.QUOTA_EXHAUSTED:
                saved = self._try_save(checkpoint)
                logger.warning("scan_quota_exhausted", url=item, index=index)
                raise QuotaExhaustedError(
                    "Scan limit exhausted. Add more scan limits to your account, "
                    f"then resume with: jsmon-cli resume {self._checkpoint_path}",
                    checkpoint_path=self._checkpoint_path,
                    saved=saved,
                )

            if outcome.error_kind == ErrorKind.RATE_LIMITED:
                saved = self._try_save(checkpoint)
                logger.warning("rate_limit_exceeded", url=item, index=index)
                raise RateLimitError(
                    "Rate limit exceeded. Wait a while, then resume with: "
                    f"jsmon-cli resume {self._checkpoint_path}",
                    checkpoint_path=self._checkpoint_path,
                    saved=saved,
                )

            summary.record(outcome)

            if outcome.success:
                logger.debug("upload_succeeded", url=item, index=index)
            else:
                logger.info(
                    "upload_failed", url=item, index=index, error=outcome.message
                )
                self._try_save(checkpoint)

            if progress is not None:
                progress(index + 1, total, outcome)

            if attempted % interval == 0:
                self._try_save(checkpoint)

        return summary

    def _complete(self, checkpoint: Checkpoint, path: Path, is_resume: bool) -> None:
        self._try_save(checkpoint)
        if is_resume:
            logger.info("checkpoint_kept", path=str(path))
        else:
            self.checkpoint_service.delete(path)

    def _try_save(self, checkpoint: Checkpoint) -> bool:
        """Save the checkpoint, logging instead of raising on failure."""
        try:
            self.checkpoint_service.save(checkpoint, self._checkpoint_path)
        except CheckpointIOError as e:
            logger.warning("checkpoint_save_skipped", error=str(e))
            return False
        return True

    # Interruption

    def handle_interrupt(self) -> None:
        """Persist progress and stop the running batch.

        Installed as the SIGINT/SIGTERM handler for the duration of a run.
        """
        if self._task is None or self._checkpoint is None or self._interrupted:
            return

        self._interrupted = True
        self._interrupt_saved = self._try_save(self._checkpoint)
        logger.warning(
            "batch_interrupted",
            path=str(self._checkpoint_path),
            last_index=self._checkpoint.last_index,
            saved=self._interrupt_saved,
        )

        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _interrupted_error(self) -> BatchInterruptedError:
        return BatchInterruptedError(
            "Interrupted. Progress saved; resume with: "
            f"jsmon-cli resume {self._checkpoint_path}",
            checkpoint_path=self._checkpoint_path,
            saved=self._interrupt_saved,
        )

    def _install_signal_handlers(self) -> List[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.handle_interrupt)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.warning(
                    "signal_handler_unavailable", signal=sig.name, error=str(e)
                )
                continue
            installed.append(sig)
        return installed

    def _remove_signal_handlers(self, installed: List[signal.Signals]) -> None:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
