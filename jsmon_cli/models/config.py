"""Configuration models for the CLI."""

from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://api.jsmon.sh/api/v2"


class CliSettings(BaseModel):
    """Runtime settings resolved from flags, environment and defaults"""

    model_config = ConfigDict(protected_namespaces=())

    base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = Field(60.0, gt=0, le=600)
    checkpoint_interval: int = Field(10, ge=1, le=1000)  # Save every N items
    resume_file: Path = Path("resume.cfg")
    credentials_path: Path = Field(
        default_factory=lambda: Path.home() / ".jsmon" / "credentials"
    )


class Credentials(BaseModel):
    """Per-invocation credentials, never persisted to a checkpoint"""

    api_key: str = ""
    workspace_id: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
