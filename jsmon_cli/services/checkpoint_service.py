"""
Checkpoint service for resumable batch uploads.

Persists a Checkpoint as pretty-printed JSON so an interrupted batch can be
resumed with ``jsmon-cli resume <file>``. Writes go to a temp file that is
then renamed; a crash mid-write may lose the latest checkpoint but never
leaves a half-written one behind.
"""

import json
from pathlib import Path
from typing import Union

import structlog
from pydantic import ValidationError

from jsmon_cli.models.checkpoint import Checkpoint
from jsmon_cli.utils.exceptions import (
    CheckpointIOError,
    CheckpointNotFoundError,
    CheckpointParseError,
)

logger = structlog.get_logger()

PathLike = Union[str, Path]


class CheckpointService:
    """
    Save, load and delete batch upload checkpoints.

    Stateless: every operation takes the checkpoint path explicitly, so one
    service can serve both the default fresh-run file and any file named on
    a resume request.
    """

    def save(self, checkpoint: Checkpoint, path: PathLike) -> None:
        """
        Save checkpoint atomically.

        Args:
            checkpoint: State to persist
            path: Destination file; parent directories are created

        Raises:
            CheckpointIOError: If the path is not writable
        """
        checkpoint_file = Path(path)
        temp_file = checkpoint_file.with_name(checkpoint_file.name + ".tmp")

        try:
            checkpoint_file.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(checkpoint.to_wire(), f, indent=2)

            temp_file.replace(checkpoint_file)

        except OSError as e:
            logger.error(
                "checkpoint_save_error", path=str(checkpoint_file), error=str(e)
            )
            raise CheckpointIOError(
                f"Failed to write checkpoint {checkpoint_file}: {e}"
            ) from e

        logger.debug(
            "checkpoint_saved",
            path=str(checkpoint_file),
            last_index=checkpoint.last_index,
            total=len(checkpoint.all_items),
        )

    def load(self, path: PathLike) -> Checkpoint:
        """
        Load checkpoint from disk.

        Args:
            path: Checkpoint file

        Returns:
            The stored Checkpoint

        Raises:
            CheckpointNotFoundError: If the file does not exist
            CheckpointParseError: If the content is not a valid checkpoint
        """
        checkpoint_file = Path(path)

        if not checkpoint_file.is_file():
            raise CheckpointNotFoundError(f"Checkpoint not found: {checkpoint_file}")

        try:
            with open(checkpoint_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise CheckpointNotFoundError(
                f"Failed to read checkpoint {checkpoint_file}: {e}"
            ) from e
        except json.JSONDecodeError as e:
            raise CheckpointParseError(
                f"Malformed checkpoint {checkpoint_file}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise CheckpointParseError(
                f"Malformed checkpoint {checkpoint_file}: expected a JSON object"
            )

        try:
            checkpoint = Checkpoint.model_validate(data)
        except ValidationError as e:
            raise CheckpointParseError(
                f"Invalid checkpoint {checkpoint_file}: {e}"
            ) from e

        logger.info(
            "checkpoint_loaded",
            path=str(checkpoint_file),
            last_index=checkpoint.last_index,
            total=len(checkpoint.all_items),
        )

        return checkpoint

    def delete(self, path: PathLike) -> bool:
        """
        Delete a checkpoint file, best effort.

        Args:
            path: Checkpoint file

        Returns:
            True if the file is gone afterwards
        """
        checkpoint_file = Path(path)

        try:
            checkpoint_file.unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(
                "checkpoint_delete_error", path=str(checkpoint_file), error=str(e)
            )
            return False

        logger.info("checkpoint_cleared", path=str(checkpoint_file))
        return True
